import base64
import json

import pytest
import responses
from click.testing import CliRunner

from pigen.cli import build_cli, main
from pigen.plugins import load_plugins
from pigen.settings import core_endpoint, load_settings

CORE = "http://core.example.com"

PLUGINS_YAML = """plugins:
  - plugin:
      label: db
    config:
      size: small
  - plugin:
      label: cache
    config:
      size: tiny
"""


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    config = tmp_path / "settings.yaml"
    config.write_text(
        f"config:\n  pigen_core:\n    endpoint: {CORE}\ncore-url: {CORE}/x\n",
        encoding="utf-8",
    )
    (tmp_path / ".env.pigen").write_text("", encoding="utf-8")
    (tmp_path / "pigen-plugins.yaml").write_text(PLUGINS_YAML, encoding="utf-8")
    return tmp_path, config


def run(config, args, input=None):
    return CliRunner().invoke(build_cli(), ["--config", str(config), *args], input=input)


def test_project_init_prints_banner_and_message(workspace):
    _, config = workspace
    result = run(config, ["project", "init"])
    assert result.exit_code == 0
    assert "init called" in result.output
    assert "▄███████▄" in result.output
    assert f"Using config file: {config}" in result.output


def test_plugin_add_and_list(workspace):
    _, config = workspace
    assert "add called" in run(config, ["plugin", "add"]).output
    result = run(config, ["plugin", "list"])
    assert "list called" in result.output
    assert f"{CORE}/x" in result.output


def test_bare_group_shows_help(workspace):
    _, config = workspace
    result = run(config, ["plugin"])
    assert result.exit_code == 0
    for name in ("install", "destroy", "output", "list", "add"):
        assert name in result.output


def test_plugin_install_posts_each_plugin(workspace):
    _, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/setup_plugin", json={})
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/setup_plugin", json={})
        result = run(config, ["plugin", "install"])
        labels = [json.loads(call.request.body)["plugin"]["label"] for call in rsps.calls]
    assert labels == ["db", "cache"]
    assert "✅ Plugins installed successfully." in result.output


def test_plugin_install_reports_core_error(workspace):
    _, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/setup_plugin", json={"error": "boom"})
        result = run(config, ["plugin", "install"])
    assert "❌ Error installing plugins: " in result.output
    assert "boom" in result.output
    assert "installed successfully." not in result.output


def test_plugin_destroy_with_update_yaml_removes_entry(workspace):
    tmp, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/destroy_plugin", json={})
        result = run(config, ["plugin", "destroy", "db", "--update-yaml"])
    assert result.exit_code == 0
    assert '✅ Plugin "db" removed from plugin.yaml successfully.' in result.output
    remaining = [p["plugin"]["label"] for p in load_plugins(tmp / "pigen-plugins.yaml")]
    assert remaining == ["cache"]


def test_plugin_destroy_asks_and_keeps_entry_on_no(workspace):
    tmp, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/destroy_plugin", json={})
        result = run(config, ["plugin", "destroy", "db"], input="n\n")
    assert '❓ Do you want to remove "db" from plugin.yaml as well? [y/N]: ' in result.output
    assert "❌ Plugin not removed from plugin.yaml." in result.output
    assert len(load_plugins(tmp / "pigen-plugins.yaml")) == 2


def test_plugin_destroy_asks_and_removes_on_yes(workspace):
    tmp, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/destroy_plugin", json={})
        run(config, ["plugin", "destroy", "cache"], input="Y\n")
    remaining = [p["plugin"]["label"] for p in load_plugins(tmp / "pigen-plugins.yaml")]
    assert remaining == ["db"]


def test_plugin_destroy_reports_core_error(workspace):
    _, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/plugin/destroy_plugin", json={"error": "denied"})
        result = run(config, ["plugin", "destroy", "db", "--update-yaml"])
    assert "❌ Failed to destroy plugin: db error:" in result.output
    assert "denied" in result.output
    assert "removed from plugin.yaml" not in result.output


def test_plugin_destroy_requires_name(workspace):
    _, config = workspace
    result = run(config, ["plugin", "destroy"])
    assert result.exit_code == 2


def test_plugin_output_prints_cleaned_values(workspace):
    _, config = workspace
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{CORE}/api/v1/plugin/get_output",
            json={"output": {"host": '"db.example.com"'}},
        )
        result = run(config, ["plugin", "output", "db"])
    assert "Output: {'host': 'db.example.com'}" in result.output
    assert "✅ Output retrieved successfully." in result.output


def test_plugin_output_unknown_plugin(workspace):
    _, config = workspace
    result = run(config, ["plugin", "output", "missing"])
    assert "❌ Error getting output:" in result.output
    assert "plugin missing not found in the plugin file" in result.output


def test_pipeline_generate_writes_script(workspace):
    tmp, config = workspace
    (tmp / "pigen-steps.yaml").write_text("steps:\n  - name: build\n", encoding="utf-8")
    script = b"steps: []\n"
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f"{CORE}/api/v1/cicd/gen_script",
            json={"Content": base64.b64encode(script).decode()},
        )
        result = run(config, ["pipeline", "generate"])
        sent = json.loads(rsps.calls[0].request.body)
    assert sent == {"steps": [{"name": "build"}]}
    assert (tmp / "cloudbuild.yaml").read_bytes() == script
    assert "Script generated successfully" in result.output


def test_pipeline_generate_missing_steps_file(workspace):
    _, config = workspace
    result = run(config, ["pipeline", "-f", "nope.yaml", "generate"])
    assert result.exit_code == 0
    assert "Error generating script:" in result.output
    assert "failed to read pigen steps file" in result.output


def test_pipeline_setup_connects_and_creates_trigger(workspace):
    tmp, config = workspace
    (tmp / "pigen-steps.yaml").write_text("repo: app\n", encoding="utf-8")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/cicd/connect_repo", json={})
        rsps.add(responses.POST, f"{CORE}/api/v1/cicd/create_trigger", json={})
        result = run(config, ["pipeline", "setup"])
    assert "setup called" in result.output
    assert "✅ Repo connected successfully" in result.output
    assert "✅ Pipeline setup successfully" in result.output


def test_pipeline_setup_trigger_error(workspace):
    tmp, config = workspace
    (tmp / "pigen-steps.yaml").write_text("repo: app\n", encoding="utf-8")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{CORE}/api/v1/cicd/connect_repo", json={})
        rsps.add(responses.POST, f"{CORE}/api/v1/cicd/create_trigger", json={"error": "nope"})
        result = run(config, ["pipeline", "setup"])
    assert "Error setting up pipeline:" in result.output
    assert "nope" in result.output
    assert "✅ Pipeline setup successfully" not in result.output


def test_config_init_quit_is_unsupported_provider(workspace):
    _, config = workspace
    result = run(config, ["config", "init"], input="q")
    assert result.exit_code == 1
    assert "Error initializing config: unsupported cloud provider: " in result.output


def test_config_init_gcp_records_existing_service(workspace, monkeypatch):
    tmp, _ = workspace
    monkeypatch.setenv("GOOGLE_OAUTH_ACCESS_TOKEN", "token")
    target = tmp / "new" / "pigen.yaml"
    uri = "https://core.example.com"
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            "https://run.googleapis.com/v2/projects/proj/locations/eu/services/pigen-core",
            json={"uri": uri},
        )
        result = CliRunner().invoke(
            build_cli(), ["--config", str(target), "config", "init"], input="\nproj\neu\n"
        )
    assert result.exit_code == 0
    assert "Project ID: proj" in result.output
    assert "Region: eu" in result.output
    assert "Configuration initialized successfully." in result.output
    settings = load_settings(target)
    assert core_endpoint(settings) == uri
    assert settings["config"]["pigen_core"]["cloud_provider"]["type"] == "GCP"


def test_main_returns_zero_on_success(workspace, capsys):
    _, config = workspace
    assert main(["--config", str(config), "plugin", "add"]) == 0
    assert "add called" in capsys.readouterr().out


def test_main_returns_one_on_usage_error(workspace):
    _, config = workspace
    assert main(["--config", str(config), "plugin", "output"]) == 1


def test_env_overrides_endpoint(workspace, monkeypatch):
    _, config = workspace
    other = "http://other.example.com"
    monkeypatch.setenv("CONFIG.PIGEN_CORE.ENDPOINT", other)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{other}/api/v1/plugin/setup_plugin", json={})
        rsps.add(responses.POST, f"{other}/api/v1/plugin/setup_plugin", json={})
        result = run(config, ["plugin", "install"])
        assert len(rsps.calls) == 2
    assert "✅ Plugins installed successfully." in result.output