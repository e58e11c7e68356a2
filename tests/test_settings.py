import pytest

from pigen.cloud_run import DeployError
from pigen.settings import (
    CloudProvider,
    Config,
    PigenCore,
    core_endpoint,
    default_config_path,
    load_settings,
)

ENDPOINT = "https://core.example.com"


def gcp_config():
    return Config(PigenCore(CloudProvider("GCP", "proj", "europe-west1")))


def test_to_dict_layout():
    cfg = Config(PigenCore(CloudProvider("GCP", "proj", "eu"), endpoint=ENDPOINT))
    assert cfg.to_dict() == {
        "pigen_core": {
            "cloud_provider": {"type": "GCP", "project_id": "proj", "region": "eu"},
            "endpoint": ENDPOINT,
        }
    }


def test_init_config_deploys_and_writes(tmp_path):
    calls = []

    def deploy(project_id, region):
        calls.append((project_id, region))
        return ENDPOINT

    path = tmp_path / "sub" / "settings.yaml"
    cfg = gcp_config()
    assert cfg.init_config(path, deploy) == path
    assert calls == [("proj", "europe-west1")]
    assert cfg.pigen_core.endpoint == ENDPOINT
    settings = load_settings(path)
    assert core_endpoint(settings) == ENDPOINT
    assert settings["config"] == cfg.to_dict()


def test_init_config_keeps_other_settings(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("core-url: kept\n")
    gcp_config().init_config(path, lambda project_id, region: ENDPOINT)
    settings = load_settings(path)
    assert settings["core-url"] == "kept"
    assert core_endpoint(settings) == ENDPOINT


def test_unsupported_provider(tmp_path):
    path = tmp_path / "settings.yaml"
    cfg = Config(PigenCore(CloudProvider("AWS")))
    with pytest.raises(ValueError, match="unsupported cloud provider: AWS"):
        cfg.init_config(path, lambda project_id, region: ENDPOINT)
    assert not path.exists()


def test_deploy_failure(tmp_path):
    def deploy(project_id, region):
        raise DeployError("down")

    with pytest.raises(RuntimeError, match="error deploying PigenCore on GCP: down"):
        gcp_config().init_config(tmp_path / "settings.yaml", deploy)


def test_core_endpoint_lookup():
    assert core_endpoint({}) == ""
    assert core_endpoint({"Config": {"PIGEN_CORE": {"Endpoint": ENDPOINT}}}) == ENDPOINT


def test_load_settings_missing_file(tmp_path):
    assert load_settings(tmp_path / "absent.yaml") == {}


def test_default_config_path(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    assert default_config_path() == tmp_path / ".pigen.yaml"