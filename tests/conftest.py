"""
Shared test fixtures for the engine-compat test suite.

  - resolver: deterministic stand-in for the browserslist CLI, backed by a
    fixed snapshot of query results; records every call it receives.
"""

import pytest
import structlog

from engine_compat.browsers import BrowserslistResolveError


def _versions(family, *versions):
    return [f"{family} {v}" for v in versions]


CANNED_QUERIES = {
    "chrome >= 120": _versions("chrome", "131", "130", "129", "128", "121", "120"),
    "chrome >= 80": _versions("chrome", "131", "130", "120", "100", "99", "80"),
    "chrome 100": _versions("chrome", "100"),
    "chrome 130": _versions("chrome", "130"),
    "firefox >= 110": _versions("firefox", "133", "128", "115", "110"),
    "last 1 chrome version": _versions("chrome", "131"),
    "last 1 safari version": _versions("safari", "18.2"),
    "op_mini all": _versions("op_mini", "all"),
    "safari TP": _versions("safari", "TP"),
    "ios_saf 17.5-17.6": _versions("ios_saf", "17.5-17.6"),
    "node >= 18": _versions("node", "23.3.0", "22.11.0", "20.18.0", "18.20.0", "18.0.0"),
    "node >= 10": _versions("node", "23.3.0", "18.0.0", "12.22.0", "10.0.0"),
    "defaults": (
        _versions("and_chr", "131")
        + _versions("chrome", "131", "130", "109")
        + _versions("edge", "131", "130")
        + _versions("firefox", "133", "128", "115")
        + _versions("ios_saf", "18.2", "17.6-17.7", "16.6-16.7")
        + _versions("op_mini", "all")
        + _versions("safari", "18.2", "17.6")
    ),
}


class FakeResolver:
    """Resolve queries from CANNED_QUERIES, splitting comma-joined queries."""

    def __init__(self, canned=None):
        self.canned = dict(CANNED_QUERIES if canned is None else canned)
        self.calls = []

    def __call__(self, queries):
        self.calls.append(list(queries))
        out = []
        for query in queries:
            for part in query.split(","):
                part = part.strip()
                if part not in self.canned:
                    raise BrowserslistResolveError(f"Unknown browser query: {part}")
                out.extend(self.canned[part])
        return out


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def make_resolver():
    return FakeResolver


@pytest.fixture(autouse=True)
def _reset_logging():
    # the CLI binds structlog to the captured stderr of the running test
    yield
    structlog.reset_defaults()
