"""engine-compat core package.

Decides whether a package's declared ``engines`` ranges and ``browserslist``
queries cover a set of per-engine minimum/maximum version requirements.
"""

from .browsers import (
    BrowserslistField,
    BrowserslistFormatError,
    BrowserslistResolveError,
    NodeBrowserslistResolver,
    QueryResolver,
    resolve_browsers,
)
from .core import check_project, satisfies
from .models import EngineConstraint, PackageManifest, RequirementSet

__all__ = [
    "BrowserslistField",
    "BrowserslistFormatError",
    "BrowserslistResolveError",
    "EngineConstraint",
    "NodeBrowserslistResolver",
    "PackageManifest",
    "QueryResolver",
    "RequirementSet",
    "check_project",
    "resolve_browsers",
    "satisfies",
]
