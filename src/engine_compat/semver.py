"""npm semver range handling built atop packaging.version.

Supported expressions:
- exact and partial versions (e.g., "1.2.3", "1.2", "1", "1.x", "*")
- caret ranges ^x.y.z
- tilde ranges ~x.y.z
- hyphen ranges "1.2.3 - 2.3.4"
- comparator sets split by spaces, e.g., ">=1.0.0 <2.0.0"
- unions joined by "||"

Every comparator set is reduced to a single interval so the questions asked
by the decision engine (lowest matched version, overlap with ``>X``) are
answered without enumerating versions.

Prerelease tags follow semver precedence rather than PEP 440: ``1.0.0-x``
sorts below ``1.0.0``. Numeric identifiers compare numerically and sort
below alphanumeric ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Protocol

from packaging.version import Version


class InvalidRange(ValueError):
    """Raised when a range expression cannot be parsed."""


_PARTIAL = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)
_COMPARATOR = re.compile(r"^(?P<op><=|>=|~>|<|>|=|~|\^)?(?P<version>.*)$")
_OPERATOR_SPACE = re.compile(r"(<=|>=|~>|<|>|=|~|\^)\s+")
_HYPHEN = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_COERCE = re.compile(r"(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?")


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


@total_ordering
@dataclass(frozen=True, eq=False)
class SemVer:
    """A release version plus its prerelease identifiers."""

    release: Version
    pre: tuple[str, ...] = ()

    @classmethod
    def of(cls, major: int, minor: int = 0, patch: int = 0, pre: str | None = None) -> SemVer:
        identifiers: tuple[str, ...] = ()
        if pre:
            identifiers = tuple(pre.split("."))
            if not all(identifiers):
                raise InvalidRange(f"Invalid prerelease: {pre!r}")
        return cls(Version(f"{major}.{minor}.{patch}"), identifiers)

    def _key(self) -> tuple:
        # a release outranks any of its prereleases
        return (self.release, not self.pre, tuple(_identifier_key(i) for i in self.pre))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: SemVer) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.pre:
            return f"{self.release}-{'.'.join(self.pre)}"
        return str(self.release)


_ZERO = SemVer.of(0)


@dataclass(frozen=True)
class _Partial:
    major: int | None
    minor: int | None
    patch: int | None
    pre: str | None


@dataclass(frozen=True)
class Bound:
    version: SemVer
    inclusive: bool


_FLOOR = Bound(_ZERO, True)


@dataclass(frozen=True)
class Interval:
    """Versions between ``lower`` and ``upper``; ``upper=None`` is unbounded."""

    lower: Bound = _FLOOR
    upper: Bound | None = None

    @property
    def empty(self) -> bool:
        if self.upper is None:
            return False
        if self.lower.version < self.upper.version:
            return False
        if self.lower.version == self.upper.version:
            return not (self.lower.inclusive and self.upper.inclusive)
        return True

    def contains(self, version: SemVer) -> bool:
        if version < self.lower.version:
            return False
        if version == self.lower.version and not self.lower.inclusive:
            return False
        if self.upper is None:
            return True
        if version > self.upper.version:
            return False
        return version != self.upper.version or self.upper.inclusive

    def intersect(self, other: Interval) -> Interval:
        return Interval(_max_lower(self.lower, other.lower), _min_upper(self.upper, other.upper))


_ANY = Interval()
_NOTHING = Interval(Bound(_ZERO, False), Bound(_ZERO, False))


def _max_lower(a: Bound, b: Bound) -> Bound:
    if a.version != b.version:
        return a if a.version > b.version else b
    return b if a.inclusive else a


def _min_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return b if a.inclusive else a


@dataclass(frozen=True)
class Range:
    """A parsed range: the union of its non-empty comparator-set intervals."""

    raw: str
    intervals: tuple[Interval, ...]


def _parse_partial(text: str) -> _Partial:
    m = _PARTIAL.match(text)
    if not m:
        raise InvalidRange(f"Invalid version: {text!r}")

    def num(part: str | None) -> int | None:
        if part is None or part in ("x", "X", "*"):
            return None
        return int(part)

    major = num(m["major"])
    minor = num(m["minor"]) if major is not None else None
    patch = num(m["patch"]) if minor is not None else None
    pre = m["pre"] if patch is not None else None
    return _Partial(major, minor, patch, pre)


def _between(lower: SemVer, upper: SemVer) -> Interval:
    return Interval(Bound(lower, True), Bound(upper, False))


def _tilde(p: _Partial) -> Interval:
    if p.major is None:
        return _ANY
    if p.minor is None:
        return _between(SemVer.of(p.major), SemVer.of(p.major + 1))
    lower = SemVer.of(p.major, p.minor, p.patch or 0, p.pre)
    return _between(lower, SemVer.of(p.major, p.minor + 1))


def _caret(p: _Partial) -> Interval:
    if p.major is None:
        return _ANY
    lower = SemVer.of(p.major, p.minor or 0, p.patch or 0, p.pre)
    if p.major > 0 or p.minor is None:
        return _between(lower, SemVer.of(p.major + 1))
    if p.minor > 0 or p.patch is None:
        return _between(lower, SemVer.of(0, p.minor + 1))
    return _between(lower, SemVer.of(0, 0, p.patch + 1))


def _comparator_interval(op: str, p: _Partial) -> Interval:
    if op in ("~", "~>"):
        return _tilde(p)
    if op == "^":
        return _caret(p)

    if p.major is None:
        return _NOTHING if op in ("<", ">") else _ANY

    if op in ("", "="):
        if p.minor is None:
            return _between(SemVer.of(p.major), SemVer.of(p.major + 1))
        if p.patch is None:
            return _between(SemVer.of(p.major, p.minor), SemVer.of(p.major, p.minor + 1))
        exact = SemVer.of(p.major, p.minor, p.patch, p.pre)
        return Interval(Bound(exact, True), Bound(exact, True))

    if op == ">":
        if p.minor is None:
            return Interval(lower=Bound(SemVer.of(p.major + 1), True))
        if p.patch is None:
            return Interval(lower=Bound(SemVer.of(p.major, p.minor + 1), True))
        return Interval(lower=Bound(SemVer.of(p.major, p.minor, p.patch, p.pre), False))

    if op == ">=":
        return Interval(lower=Bound(SemVer.of(p.major, p.minor or 0, p.patch or 0, p.pre), True))

    if op == "<":
        return Interval(upper=Bound(SemVer.of(p.major, p.minor or 0, p.patch or 0, p.pre), False))

    # <=
    if p.minor is None:
        return Interval(upper=Bound(SemVer.of(p.major + 1), False))
    if p.patch is None:
        return Interval(upper=Bound(SemVer.of(p.major, p.minor + 1), False))
    return Interval(upper=Bound(SemVer.of(p.major, p.minor, p.patch, p.pre), True))


def _hyphen_interval(low: str, high: str) -> Interval:
    lo = _parse_partial(low)
    hi = _parse_partial(high)
    interval = _ANY
    if lo.major is not None:
        interval = _comparator_interval(">=", lo)
    if hi.major is not None:
        interval = interval.intersect(_comparator_interval("<=", hi))
    return interval


def _parse_comparator_set(text: str) -> Interval:
    hyphen = _HYPHEN.match(text)
    if hyphen:
        return _hyphen_interval(hyphen.group(1), hyphen.group(2))

    interval = _ANY
    for token in _OPERATOR_SPACE.sub(r"\1", text).split():
        m = _COMPARATOR.match(token)
        if m is None:
            raise InvalidRange(f"Invalid comparator: {token!r}")
        interval = interval.intersect(_comparator_interval(m["op"] or "", _parse_partial(m["version"])))
    return interval


def parse_range(expr: str) -> Range:
    """Parse an npm range expression; raise InvalidRange when malformed."""
    if not isinstance(expr, str):
        raise InvalidRange(f"Range must be a string, got {type(expr).__name__}")

    intervals: list[Interval] = []
    for part in expr.split("||"):
        interval = _parse_comparator_set(part.strip())
        if not interval.empty:
            intervals.append(interval)
    return Range(raw=expr, intervals=tuple(intervals))


def _successor(v: SemVer) -> SemVer:
    if v.pre:
        return SemVer(v.release, (*v.pre, "0"))
    return SemVer.of(v.release.major, v.release.minor, v.release.micro + 1)


def min_version(expr: str) -> SemVer | None:
    """Return the lowest version matched by ``expr``.

    ``None`` when the range is malformed or matches nothing.
    """
    try:
        rng = parse_range(expr)
    except InvalidRange:
        return None

    candidates: list[SemVer] = []
    for interval in rng.intervals:
        lowest = interval.lower.version
        if not interval.lower.inclusive:
            lowest = _successor(lowest)
        if interval.contains(lowest):
            candidates.append(lowest)
    return min(candidates) if candidates else None


def intersects_above(expr: str, version: str) -> bool:
    """Return True if ``expr`` admits any version matched by ``>version``.

    Raises InvalidRange when either side cannot be parsed.
    """
    above = _parse_comparator_set(f">{version.strip()}")
    rng = parse_range(expr)
    return any(not interval.intersect(above).empty for interval in rng.intervals)


def coerce(value: str | None) -> SemVer | None:
    """Loosely coerce ``value`` into a version ("14" -> 14.0.0, "all" -> None)."""
    if value is None:
        return None
    m = _COERCE.search(str(value))
    if not m:
        return None
    return SemVer.of(int(m.group(1)), int(m.group(2) or 0), int(m.group(3) or 0))


def gte(a: SemVer, b: SemVer) -> bool:
    return a >= b


def lte(a: SemVer, b: SemVer) -> bool:
    return a <= b


class SemverPrimitives(Protocol):
    """Version-range operations the decision engine depends on."""

    def min_version(self, expr: str) -> SemVer | None: ...

    def intersects_above(self, expr: str, version: str) -> bool: ...

    def coerce(self, value: str | None) -> SemVer | None: ...

    def gte(self, a: SemVer, b: SemVer) -> bool: ...

    def lte(self, a: SemVer, b: SemVer) -> bool: ...


class NpmSemver:
    """Default primitive set backed by the functions in this module."""

    min_version = staticmethod(min_version)
    intersects_above = staticmethod(intersects_above)
    coerce = staticmethod(coerce)
    gte = staticmethod(gte)
    lte = staticmethod(lte)
