"""
Tests for engine_compat.manifest and the PackageManifest/requirement models.

Registry access is patched at engine_compat.manifest._http_get.
"""

import json
from unittest import mock

import pytest

from engine_compat.browsers import BrowserslistFormatError
from engine_compat.manifest import (
    REGISTRY_ENV_VAR,
    ManifestError,
    fetch_registry_manifest,
    find_package_json,
    load_manifest,
    registry_url,
)
from engine_compat.models import EngineConstraint, PackageManifest, RequirementSet


def _write_manifest(directory, data):
    path = directory / "package.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestPackageManifest:
    def test_from_dict(self):
        manifest = PackageManifest.from_dict(
            {
                "name": "demo",
                "version": "1.0.0",
                "engines": {"node": ">=18", "npm": 9},
                "browserslist": ["defaults"],
            }
        )
        assert manifest.name == "demo"
        assert manifest.engines == {"node": ">=18"}
        assert manifest.browserslist.queries == ("defaults",)

    def test_engines_not_a_mapping(self):
        assert PackageManifest.from_dict({"engines": ["node"]}).engines == {}

    def test_rejects_env_keyed_browserslist(self):
        with pytest.raises(BrowserslistFormatError):
            PackageManifest.from_dict({"browserslist": {"production": ["defaults"]}})

    def test_with_browserslist(self):
        manifest = PackageManifest.from_dict({"browserslist": "chrome 100"})
        replaced = manifest.with_browserslist(["chrome 130"])
        assert replaced.browserslist.kind == "list"
        assert replaced.browserslist.queries == ("chrome 130",)
        assert manifest.browserslist.queries == ("chrome 100",)


class TestRequirements:
    def test_from_dict(self):
        reqs = RequirementSet.from_dict(
            {"requirements": [{"engine": "node", "minVersion": "14"}, {"engine": "chrome", "maxVersion": "120"}]}
        )
        assert list(reqs) == [
            EngineConstraint("node", min_version="14"),
            EngineConstraint("chrome", max_version="120"),
        ]

    def test_round_trip_wire_keys(self):
        data = {"requirements": [{"engine": "node", "minVersion": "14", "maxVersion": "20"}]}
        assert RequirementSet.from_dict(data).to_dict() == data

    def test_missing_engine(self):
        with pytest.raises(ValueError, match="engine"):
            EngineConstraint.from_dict({"minVersion": "14"})

    def test_bad_version_type(self):
        with pytest.raises(ValueError, match="minVersion"):
            EngineConstraint.from_dict({"engine": "node", "minVersion": ["14"]})

    def test_numeric_version_rejected(self):
        with pytest.raises(ValueError, match="maxVersion"):
            EngineConstraint.from_dict({"engine": "node", "maxVersion": 14.10})

    def test_is_bounded(self):
        assert EngineConstraint("node").is_bounded is False
        assert EngineConstraint("node", min_version="").is_bounded is False
        assert EngineConstraint("node", max_version="20").is_bounded is True


# ---------------------------------------------------------------------------
# Disk
# ---------------------------------------------------------------------------

class TestDisk:
    def test_find_in_start_dir(self, tmp_path):
        path = _write_manifest(tmp_path, {})
        assert find_package_json(tmp_path) == path

    def test_find_walks_up(self, tmp_path):
        path = _write_manifest(tmp_path, {})
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_package_json(nested) == path

    def test_find_prefers_nearest(self, tmp_path):
        _write_manifest(tmp_path, {})
        nested = tmp_path / "pkg"
        nested.mkdir()
        inner = _write_manifest(nested, {})
        assert find_package_json(nested) == inner

    def test_find_from_file(self, tmp_path):
        path = _write_manifest(tmp_path, {})
        source = tmp_path / "index.js"
        source.write_text("", encoding="utf-8")
        assert find_package_json(source) == path

    def test_load(self, tmp_path):
        path = _write_manifest(tmp_path, {"engines": {"node": ">=20"}})
        assert load_manifest(path).engines == {"node": ">=20"}

    def test_load_invalid_json(self, tmp_path):
        path = _write_manifest(tmp_path, "{nope")
        with pytest.raises(ManifestError, match="Invalid JSON"):
            load_manifest(path)

    def test_load_non_object(self, tmp_path):
        path = _write_manifest(tmp_path, [1, 2])
        with pytest.raises(ManifestError, match="must be a JSON object"):
            load_manifest(path)

    def test_load_missing(self, tmp_path):
        with pytest.raises(ManifestError, match="Failed to read"):
            load_manifest(tmp_path / "package.json")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def _response(status=200, payload=None):
    resp = mock.Mock()
    resp.status_code = status
    resp.json.return_value = payload if payload is not None else {}
    return resp


class TestRegistry:
    def test_registry_url(self, monkeypatch):
        monkeypatch.delenv(REGISTRY_ENV_VAR, raising=False)
        assert registry_url("left-pad") == "https://registry.npmjs.org/left-pad/latest"
        assert registry_url("@babel/core", "7.26.0") == "https://registry.npmjs.org/@babel%2Fcore/7.26.0"

    def test_registry_from_env(self, monkeypatch):
        monkeypatch.setenv(REGISTRY_ENV_VAR, "https://npm.example.com/")
        assert registry_url("left-pad", "1.3.0") == "https://npm.example.com/left-pad/1.3.0"

    def test_fetch(self, monkeypatch):
        monkeypatch.delenv(REGISTRY_ENV_VAR, raising=False)
        payload = {"name": "demo", "version": "2.0.0", "engines": {"node": ">=18"}}
        with mock.patch("engine_compat.manifest._http_get", return_value=_response(payload=payload)) as get:
            manifest = fetch_registry_manifest("demo", "2.0.0")
        get.assert_called_once_with("https://registry.npmjs.org/demo/2.0.0")
        assert manifest.version == "2.0.0"
        assert manifest.engines == {"node": ">=18"}

    def test_fetch_not_found(self):
        with mock.patch("engine_compat.manifest._http_get", return_value=_response(status=404)):
            with pytest.raises(ManifestError, match="404"):
                fetch_registry_manifest("does-not-exist")

    def test_fetch_bad_json(self):
        resp = _response()
        resp.json.side_effect = ValueError("bad json")
        with mock.patch("engine_compat.manifest._http_get", return_value=resp):
            with pytest.raises(ManifestError, match="Invalid JSON"):
                fetch_registry_manifest("demo")
