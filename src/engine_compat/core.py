"""Compatibility decision engine.

Decides whether a package's declared ``engines`` ranges and ``browserslist``
queries cover a caller's per-engine minimum/maximum requirements.

This module performs no I/O of its own apart from ``check_project``; browser
queries go through an injected ``QueryResolver`` and range arithmetic through
an injected ``SemverPrimitives``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from .browsers import (
    NodeBrowserslistResolver,
    QueryResolver,
    latest_safari_version,
    resolve_browsers,
    split_version_token,
)
from .manifest import find_package_json, load_manifest
from .models import EngineConstraint, PackageManifest, RequirementSet
from .semver import InvalidRange, NpmSemver, SemverPrimitives

log = structlog.get_logger(__name__)

# Safari Technology Preview has no comparable version of its own.
SAFARI_PREVIEW_TOKEN = "TP"


def _as_requirements(requirements: Any) -> RequirementSet:
    if isinstance(requirements, RequirementSet):
        return requirements
    if isinstance(requirements, Mapping):
        return RequirementSet.from_dict(requirements)
    return RequirementSet.from_iterable(requirements)


def _as_manifest(manifest: Any) -> PackageManifest:
    if isinstance(manifest, PackageManifest):
        return manifest
    return PackageManifest.from_dict(manifest)


def _once_per_query(resolver: QueryResolver) -> QueryResolver:
    """Wrap ``resolver`` so each distinct query list is resolved only once."""
    seen: dict[tuple[str, ...], list[str]] = {}

    def resolve(queries: Sequence[str]) -> list[str]:
        key = tuple(queries)
        if key not in seen:
            seen[key] = list(resolver(list(key)))
        return seen[key]

    return resolve


def satisfies(
    manifest: PackageManifest | Mapping[str, Any],
    requirements: RequirementSet | Mapping[str, Any] | Iterable[EngineConstraint],
    *,
    resolver: QueryResolver | None = None,
    semver: SemverPrimitives | None = None,
) -> bool:
    """Return True if ``manifest`` claims support for every requirement.

    Params:
        manifest: a PackageManifest or a parsed package.json object
        requirements: a RequirementSet, ``{"requirements": [...]}`` or an
            iterable of EngineConstraint
        resolver: browserslist query resolver; defaults to the npm CLI
        semver: range primitives; defaults to NpmSemver

    A platform the manifest never mentions (neither in ``engines`` nor in
    its resolved browsers) does not fail a requirement. A bound that cannot
    be compared does.

    The manifest is only parsed once a bounded requirement is seen, so
    unbounded requirements never change the outcome.

    Raises BrowserslistFormatError for an unsupported browserslist shape.
    """
    requirements = _as_requirements(requirements)
    if not requirements:
        return True

    resolver = _once_per_query(resolver or NodeBrowserslistResolver())
    semver = semver or NpmSemver()

    browsers: dict[str, list[str]] | None = None
    for constraint in requirements:
        if not constraint.is_bounded:
            continue

        if browsers is None:
            manifest = _as_manifest(manifest)
            browsers = resolve_browsers(manifest.browserslist, resolver)

        engine_range = manifest.engines.get(constraint.engine) or None
        versions = browsers.get(constraint.engine)

        if engine_range is None and versions is None:
            log.debug("constraint.untargeted", engine=constraint.engine)
            continue

        if engine_range is not None and not _engine_range_ok(engine_range, constraint, semver):
            return False

        if versions is not None and not _browser_versions_ok(versions, constraint, semver, resolver):
            return False

    return True


def _engine_range_ok(engine_range: str, constraint: EngineConstraint, semver: SemverPrimitives) -> bool:
    if constraint.min_version:
        floor = semver.min_version(engine_range)
        minimum = semver.coerce(constraint.min_version)
        if floor is None or minimum is None or not semver.gte(floor, minimum):
            log.debug(
                "engine.below_minimum",
                engine=constraint.engine,
                range=engine_range,
                floor=str(floor) if floor else None,
                min_version=constraint.min_version,
            )
            return False

    if constraint.max_version:
        try:
            exceeds = semver.intersects_above(engine_range, constraint.max_version)
        except InvalidRange:
            exceeds = True
        if exceeds:
            log.debug(
                "engine.above_maximum",
                engine=constraint.engine,
                range=engine_range,
                max_version=constraint.max_version,
            )
            return False

    return True


def _browser_versions_ok(
    versions: list[str],
    constraint: EngineConstraint,
    semver: SemverPrimitives,
    resolver: QueryResolver,
) -> bool:
    for token in versions:
        if token == SAFARI_PREVIEW_TOKEN:
            latest = latest_safari_version(resolver)
            if latest is None:
                log.debug("browser.preview_unresolved", engine=constraint.engine)
                continue
            token = latest

        low, high = split_version_token(token)

        if constraint.min_version:
            lowest = semver.coerce(low)
            minimum = semver.coerce(constraint.min_version)
            if lowest is None or minimum is None or not semver.gte(lowest, minimum):
                log.debug(
                    "browser.below_minimum",
                    engine=constraint.engine,
                    token=token,
                    min_version=constraint.min_version,
                )
                return False

        if constraint.max_version:
            highest = semver.coerce(high)
            maximum = semver.coerce(constraint.max_version)
            if highest is None or maximum is None or not semver.lte(highest, maximum):
                log.debug(
                    "browser.above_maximum",
                    engine=constraint.engine,
                    token=token,
                    max_version=constraint.max_version,
                )
                return False

    return True


def check_project(
    root: Path,
    requirements: RequirementSet | Mapping[str, Any] | Iterable[EngineConstraint],
    *,
    browserslist_override: Sequence[str] | None = None,
    resolver: QueryResolver | None = None,
    semver: SemverPrimitives | None = None,
) -> bool:
    """Decide compatibility for the package that owns ``root``.

    The nearest package.json at or above ``root`` is used; without one every
    platform is untargeted. ``browserslist_override`` replaces the manifest's
    own queries.
    """
    root = root.resolve()
    path = find_package_json(root)
    manifest = load_manifest(path) if path else PackageManifest()
    if browserslist_override is not None:
        manifest = manifest.with_browserslist(browserslist_override)

    if resolver is None:
        resolver = NodeBrowserslistResolver(cwd=path.parent if path else root)

    return satisfies(manifest, requirements, resolver=resolver, semver=semver)
