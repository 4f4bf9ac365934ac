import json

import pytest
from pydantic import ValidationError as ModelValidationError

from alb_deploy.config.binding import BindingConfig
from alb_deploy.config.store import ConfigStore
from alb_deploy.errors import ConfigError
from alb_deploy.project import ProjectManifest


def test_get_returns_none_without_files(tmp_path):
    assert ConfigStore().get("alb", str(tmp_path)) is None


def test_set_creates_dedicated_file(tmp_path):
    store = ConfigStore()
    store.set("alb", {"loadBalancer": "shared"}, str(tmp_path))

    assert json.loads((tmp_path / "alb.json").read_text()) == {"alb": {"loadBalancer": "shared"}}
    assert store.get("alb", str(tmp_path)) == {"loadBalancer": "shared"}


def test_set_merges_into_existing_shared_config(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"api": {"id": "abc"}}))
    ConfigStore().set("alb", {"region": "us-east-1"}, str(tmp_path))

    data = json.loads((tmp_path / "config.json").read_text())
    assert data == {"api": {"id": "abc"}, "alb": {"region": "us-east-1"}}
    assert not (tmp_path / "alb.json").exists()


def test_dedicated_file_wins_over_shared(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"alb": {"from": "shared"}}))
    (tmp_path / "alb.json").write_text(json.dumps({"alb": {"from": "dedicated"}}))
    assert ConfigStore().get("alb", str(tmp_path)) == {"from": "dedicated"}


def test_corrupt_file_raises(tmp_path):
    (tmp_path / "alb.json").write_text("{not json")
    with pytest.raises(ConfigError):
        ConfigStore().get("alb", str(tmp_path))


def test_binding_config_round_trips_camel_case(binding_config):
    data = binding_config.to_dict()
    assert data["serviceName"] == "orders"
    assert data["lambda"] == {"role": "", "name": "orders-api", "module": "handler", "dir": "app"}
    assert BindingConfig.model_validate(data) == binding_config


def test_binding_config_rejects_bad_template(binding_config):
    data = binding_config.to_dict()
    data["pathTemplate"] = "/{service}/"
    with pytest.raises(ModelValidationError):
        BindingConfig.model_validate(data)


def test_manifest_from_pyproject(project_dir):
    manifest = ProjectManifest.load(str(project_dir))
    assert (manifest.name, manifest.version) == ("orders", "1.0.0")


def test_manifest_from_package_json(tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({"name": "svc", "version": "2.1.0", "main": "dist/index.js"}))
    manifest = ProjectManifest.load(str(tmp_path))
    assert manifest == ProjectManifest(name="svc", version="2.1.0", main="dist/index.js")


def test_manifest_missing(tmp_path):
    with pytest.raises(ConfigError):
        ProjectManifest.load(str(tmp_path))
