"""Manifest and requirement models."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from .browsers import ABSENT, BrowserslistField


@dataclass(frozen=True)
class PackageManifest:
    """Platform-support claims of a package.

    ``engines`` maps an engine name to a semver range; ``browserslist`` holds
    the already-classified browserslist field.
    """

    engines: Mapping[str, str] = field(default_factory=dict)
    browserslist: BrowserslistField = ABSENT
    name: str | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PackageManifest:
        engines_data = data.get("engines")
        engines: dict[str, str] = {}
        if isinstance(engines_data, Mapping):
            # npm ignores non-string ranges
            engines = {str(k): v for k, v in engines_data.items() if isinstance(v, str)}

        name = data.get("name")
        version = data.get("version")
        return cls(
            engines=engines,
            browserslist=BrowserslistField.parse(data.get("browserslist")),
            name=name if isinstance(name, str) else None,
            version=version if isinstance(version, str) else None,
        )

    def with_browserslist(self, queries: Sequence[str]) -> PackageManifest:
        return replace(self, browserslist=BrowserslistField.parse(list(queries)))


@dataclass(frozen=True)
class EngineConstraint:
    """Minimum and/or maximum version required for one engine."""

    engine: str
    min_version: str | None = None
    max_version: str | None = None

    def __post_init__(self) -> None:
        if not self.engine:
            raise ValueError("Constraint engine must be non-empty")

    @property
    def is_bounded(self) -> bool:
        return bool(self.min_version or self.max_version)

    def to_dict(self) -> dict[str, str]:
        data = {"engine": self.engine}
        if self.min_version:
            data["minVersion"] = self.min_version
        if self.max_version:
            data["maxVersion"] = self.max_version
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConstraint:
        engine = data.get("engine")
        if not isinstance(engine, str) or not engine:
            raise ValueError(f"Requirement is missing required 'engine' field: {dict(data)!r}")
        return cls(
            engine=engine,
            min_version=_optional_version(data, "minVersion"),
            max_version=_optional_version(data, "maxVersion"),
        )


def _optional_version(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Requirement '{key}' must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class RequirementSet:
    """Ordered constraints combined with AND."""

    requirements: tuple[EngineConstraint, ...] = ()

    def __iter__(self) -> Iterator[EngineConstraint]:
        return iter(self.requirements)

    def __len__(self) -> int:
        return len(self.requirements)

    def to_dict(self) -> dict[str, object]:
        return {"requirements": [c.to_dict() for c in self.requirements]}

    @classmethod
    def from_iterable(cls, constraints: Iterable[EngineConstraint]) -> RequirementSet:
        return cls(requirements=tuple(constraints))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RequirementSet:
        items = data.get("requirements") or []
        if not isinstance(items, list):
            raise ValueError("'requirements' must be an array")
        return cls.from_iterable(EngineConstraint.from_dict(item) for item in items)
