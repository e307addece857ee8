"""Locate and load package manifests from disk or the npm registry."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests
import structlog
from requests import Response
from tenacity import retry, stop_after_attempt, wait_fixed

from .models import PackageManifest

log = structlog.get_logger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org"
REGISTRY_ENV_VAR = "ENGINE_COMPAT_REGISTRY"


class ManifestError(RuntimeError):
    """Raised when a manifest cannot be read or is not a JSON object."""


def find_package_json(start: Path) -> Path | None:
    """Return the nearest package.json at or above ``start``."""
    start = start.resolve()
    if start.is_file():
        start = start.parent

    for directory in (start, *start.parents):
        candidate = directory / "package.json"
        if candidate.is_file():
            return candidate
    return None


def _manifest_from_data(data: Any, source: str) -> PackageManifest:
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {source} must be a JSON object")
    return PackageManifest.from_dict(data)


def load_manifest(path: Path) -> PackageManifest:
    """Read a package.json file into a PackageManifest."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Failed to read manifest {path}: {exc}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in manifest {path}: {exc}") from exc

    log.debug("manifest.loaded", path=str(path))
    return _manifest_from_data(data, str(path))


@retry(reraise=True, stop=stop_after_attempt(3), wait=wait_fixed(2))
def _http_get(url: str) -> Response:
    return requests.get(url, headers={"Accept": "application/json"}, timeout=30)


def registry_url(name: str, version: str = "latest", registry: str | None = None) -> str:
    base = (registry or os.environ.get(REGISTRY_ENV_VAR) or DEFAULT_REGISTRY).rstrip("/")
    # scoped names keep their "@" but encode the slash
    return f"{base}/{quote(name, safe='@')}/{quote(version, safe='')}"


def fetch_registry_manifest(
    name: str,
    version: str = "latest",
    registry: str | None = None,
) -> PackageManifest:
    """Fetch the published manifest of ``name@version`` from an npm registry."""
    url = registry_url(name, version, registry)

    try:
        response = _http_get(url)
    except requests.RequestException as exc:  # pragma: no cover - network failure path
        raise ManifestError(f"Failed to fetch manifest {url}: {exc}") from exc

    if response.status_code != 200:
        raise ManifestError(f"Unexpected status code {response.status_code} fetching {url}")

    try:
        data = response.json()
    except ValueError as exc:
        raise ManifestError(f"Invalid JSON in manifest {url}: {exc}") from exc

    log.debug("manifest.fetched", url=url)
    return _manifest_from_data(data, url)
