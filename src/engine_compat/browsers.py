"""Browserslist field normalisation and query resolution.

A manifest's ``browserslist`` field is parsed once into a ``BrowserslistField``
and resolved through a ``QueryResolver`` into a mapping of browser family to
the version tokens that family resolved to, e.g.::

    {"chrome": ["131", "130"], "ios_saf": ["17.5-17.6"], "safari": ["TP"]}
"""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, TypeAlias

import structlog

log = structlog.get_logger(__name__)

BROWSERSLIST_CMD_ENV_VAR = "ENGINE_COMPAT_BROWSERSLIST_CMD"
DEFAULT_BROWSERSLIST_CMD = "npx --yes browserslist"
LATEST_SAFARI_QUERY = "last 1 safari version"

# Takes an ordered list of queries, returns "family version" entries.
QueryResolver: TypeAlias = Callable[[Sequence[str]], list[str]]


class BrowserslistFormatError(ValueError):
    """Raised when a manifest's browserslist field has an unsupported shape."""


class BrowserslistResolveError(RuntimeError):
    """Raised when the browserslist resolver cannot be run or fails."""


@dataclass(frozen=True)
class BrowserslistField:
    """The browserslist field of a manifest, reduced to its query list."""

    kind: Literal["absent", "string", "list"]
    queries: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: Any) -> BrowserslistField:
        """Classify a raw ``browserslist`` value.

        Environment-keyed objects (``{"production": [...]}``) and lists holding
        anything but strings raise BrowserslistFormatError.
        """
        if value is None:
            return cls(kind="absent")
        if isinstance(value, str):
            if not value.strip():
                return cls(kind="absent")
            return cls(kind="string", queries=(value,))
        if isinstance(value, (list, tuple)) and all(isinstance(q, str) for q in value):
            return cls(kind="list", queries=tuple(value))
        raise BrowserslistFormatError(f"Unsupported browserslist format: {value!r}")


ABSENT = BrowserslistField(kind="absent")


def resolve_browsers(field: BrowserslistField, resolver: QueryResolver) -> dict[str, list[str]]:
    """Resolve ``field`` into family -> version tokens, preserving resolver order."""
    if not field.queries:
        return {}

    resolved: dict[str, list[str]] = {}
    for entry in resolver(list(field.queries)):
        family, sep, version = entry.partition(" ")
        if not sep:
            log.debug("browserslist.entry_skipped", entry=entry)
            continue
        resolved.setdefault(family, []).append(version)
    return resolved


def latest_safari_version(resolver: QueryResolver) -> str | None:
    """Return the version of the newest stable Safari, or None if unresolved."""
    for entry in resolver([LATEST_SAFARI_QUERY]):
        _, sep, version = entry.partition(" ")
        if sep and version:
            return version
    return None


def split_version_token(token: str) -> tuple[str, str]:
    """Split a resolved token into its (low, high) bounds.

    ``"17.5-17.6"`` -> ``("17.5", "17.6")``; a plain ``"120"`` is both bounds.
    """
    parts = token.split("-")
    return parts[0], parts[-1]


class NodeBrowserslistResolver:
    """Resolve queries with the browserslist CLI published on npm.

    The command runs in ``cwd`` so it picks up the project's installed
    browserslist and caniuse-lite data when present.
    """

    def __init__(
        self,
        cwd: Path | str | None = None,
        command: str | None = None,
        timeout: float = 60,
    ) -> None:
        self.cwd = Path(cwd) if cwd is not None else None
        self.command = command or os.environ.get(BROWSERSLIST_CMD_ENV_VAR) or DEFAULT_BROWSERSLIST_CMD
        self.timeout = timeout

    def __call__(self, queries: Sequence[str]) -> list[str]:
        args = [*shlex.split(self.command), ", ".join(queries)]
        log.debug("browserslist.resolve", queries=list(queries), cwd=str(self.cwd or "."))
        try:
            proc = subprocess.run(
                args,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BrowserslistResolveError(
                f"browserslist command not found: {self.command}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BrowserslistResolveError(
                f"browserslist timed out after {self.timeout}s for {list(queries)!r}"
            ) from exc

        if proc.returncode != 0:
            raise BrowserslistResolveError(
                f"browserslist failed for {list(queries)!r}: {proc.stderr.strip()}"
            )

        return [line.strip() for line in proc.stdout.splitlines() if line.strip()]
