"""Command line entrypoint.

Usage:
  engine-compat [--root DIR | --package NAME[@VERSION]]
                [--requirements FILE] [--require ENGINE[:MIN[:MAX]] ...]
                [--browserslist QUERY ...] [--json] [--verbose]

Exit codes: 0 compatible, 10 incompatible, 1 on errors.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import structlog

from .browsers import BrowserslistFormatError, BrowserslistResolveError
from .config import ConfigError, load_requirements
from .core import check_project, satisfies
from .manifest import ManifestError, fetch_registry_manifest
from .models import EngineConstraint, RequirementSet

EXIT_INCOMPATIBLE = 10


def _configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def parse_requirement(text: str) -> EngineConstraint:
    """Parse ``ENGINE[:MIN[:MAX]]``; an empty MIN means no lower bound."""
    parts = text.split(":")
    if len(parts) > 3 or not parts[0]:
        raise ValueError(f"Invalid requirement {text!r}; expected ENGINE[:MIN[:MAX]]")
    min_version = parts[1] if len(parts) > 1 and parts[1] else None
    max_version = parts[2] if len(parts) > 2 and parts[2] else None
    return EngineConstraint(engine=parts[0], min_version=min_version, max_version=max_version)


def split_package_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version`` (scoped names allowed); version defaults to latest."""
    name, sep, version = spec.rpartition("@")
    if not sep or not name:
        return spec, "latest"
    return name, version or "latest"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="engine-compat",
        description="Check a package's engines/browserslist claims against version requirements.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Directory whose nearest package.json is checked (default: .)",
    )
    source.add_argument(
        "--package",
        default=None,
        help="Check a published package instead, as NAME[@VERSION]",
    )
    parser.add_argument(
        "--requirements",
        type=Path,
        default=None,
        help="JSON or YAML requirement file",
    )
    parser.add_argument(
        "--require",
        action="append",
        default=[],
        metavar="ENGINE[:MIN[:MAX]]",
        help="Inline requirement; may be repeated",
    )
    parser.add_argument(
        "--browserslist",
        action="append",
        default=None,
        metavar="QUERY",
        help="Override the manifest's browserslist queries; may be repeated",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON result")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser.parse_args(argv)


def _collect_requirements(args: argparse.Namespace) -> RequirementSet:
    constraints: list[EngineConstraint] = []
    if args.requirements is not None or not args.require:
        constraints.extend(load_requirements(args.requirements))
    constraints.extend(parse_requirement(text) for text in args.require)
    return RequirementSet.from_iterable(constraints)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    try:
        requirements = _collect_requirements(args)
        if args.package:
            name, version = split_package_spec(args.package)
            manifest = fetch_registry_manifest(name, version)
            if args.browserslist is not None:
                manifest = manifest.with_browserslist(args.browserslist)
            # dist-tags such as "latest" resolve to a concrete version
            source = f"{manifest.name or name}@{manifest.version or version}"
            ok = satisfies(manifest, requirements)
        else:
            root = args.root or Path(".")
            source = str(root)
            ok = check_project(root, requirements, browserslist_override=args.browserslist)
    except (
        ConfigError,
        ManifestError,
        BrowserslistFormatError,
        BrowserslistResolveError,
        ValueError,
    ) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"source": source, "satisfied": ok, **requirements.to_dict()}, indent=2))
    else:
        print(f"{source}: {'compatible' if ok else 'incompatible'}")

    return 0 if ok else EXIT_INCOMPATIBLE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
