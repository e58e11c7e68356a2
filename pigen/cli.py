"""The pigen command line: core setup, plugins and CI/CD pipelines."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import click
from click.core import ParameterSource

from .pipeline import PipelineError, generate_script, setup_pipeline
from .plugins import PigenClient, PluginError, remove_plugin
from .prompts import choose_provider, prompt_gcp_settings
from .settings import Config, core_endpoint, default_config_path, load_settings

PLUGINS_FILE = "pigen-plugins.yaml"
STEPS_FILE = "pigen-steps.yaml"
_ENDPOINT_KEY = "config.pigen_core.endpoint"

BANNER = r"""
		
   ▄███████▄  ▄█     ▄██████▄     ▄████████ ███▄▄▄▄   
  ███    ███ ███    ███    ███   ███    ███ ███▀▀▀██▄ 
  ███    ███ ███▌   ███    █▀    ███    █▀  ███   ███ 
  ███    ███ ███▌  ▄███         ▄███▄▄▄     ███   ███ 
▀█████████▀  ███▌ ▀▀███ ████▄  ▀▀███▀▀▀     ███   ███ 
  ███        ███    ███    ███   ███    █▄  ███   ███ 
  ███        ███    ███    ███   ███    ███ ███   ███ 
 ▄████▀      █▀     ████████▀    ██████████  ▀█   █▀  
                                                      
"""


@dataclass
class _State:
    config_path: Path
    settings: dict[str, Any] = field(default_factory=dict)

    def setting(self, key: str) -> str:
        """Look a dotted key up in the environment first, then in the settings."""
        from_env = os.environ.get(key.upper())
        if from_env is not None:
            return from_env
        if key == _ENDPOINT_KEY:
            return core_endpoint(self.settings)
        value: Any = self.settings
        for name in key.split("."):
            if not isinstance(value, Mapping):
                return ""
            lowered = name.lower()
            value = next(
                (v for k, v in value.items() if str(k).lower() == lowered), None
            )
        return "" if value is None else str(value)

    def client(self, plugins_path: str | Path = PLUGINS_FILE) -> PigenClient:
        return PigenClient(self.setting(_ENDPOINT_KEY), plugins_path=plugins_path)


def _show_help_if_bare(ctx: click.Context) -> None:
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def build_cli() -> click.Group:
    """Assemble the pigen command tree."""

    @click.group(name="pigen", help="Deploy the pigen core and drive plugins and pipelines.")
    @click.option(
        "--config",
        "config_file",
        default="",
        help="config file (default is $HOME/.pigen.yaml)",
    )
    @click.option("-t", "--toggle", is_flag=True, default=False, help="Help message for toggle")
    @click.pass_context
    def root(ctx: click.Context, config_file: str, toggle: bool) -> None:
        path = Path(config_file) if config_file else default_config_path()
        try:
            settings = load_settings(path)
        except ValueError:
            settings = {}
        else:
            if path.exists():
                click.echo(f"Using config file: {path}", err=True)
        ctx.obj = _State(config_path=path, settings=settings)
        click.echo(BANNER, nl=False)

    # --- config -------------------------------------------------------------

    @root.group(name="config", invoke_without_command=True, help="Manage pigen settings.")
    @click.pass_context
    def config_group(ctx: click.Context) -> None:
        _show_help_if_bare(ctx)

    @config_group.command(name="init", help="Choose a cloud provider and deploy the core.")
    @click.pass_context
    def config_init(ctx: click.Context) -> None:
        state: _State = ctx.obj
        config = Config()
        choice = choose_provider(("GCP", "AWS", "AZURE"))
        click.echo(f"You selected: {choice}")
        if choice == "GCP":
            provider = config.pigen_core.cloud_provider
            provider.type = "GCP"
            project_id, region = prompt_gcp_settings()
            click.echo("\n--- GCP Configuration ---")
            click.echo(f"Project ID: {project_id}")
            click.echo(f"Region: {region}")
            provider.project_id = project_id
            provider.region = region
        try:
            written = config.init_config(state.config_path)
        except (ValueError, RuntimeError) as exc:
            click.echo(f"Error initializing config: {exc}")
            ctx.exit(1)
            return
        click.echo("Configuration initialized successfully.")
        click.echo(f"Config file created at: {written}")
        click.echo("You can now use 'pigen' cli tool")

    # --- pipeline -----------------------------------------------------------

    @root.group(name="pipeline", invoke_without_command=True, help="Manage the CI/CD pipeline.")
    @click.option(
        "-f", "--file", "steps_file", default=STEPS_FILE, help="pigen-steps.yaml file path"
    )
    @click.pass_context
    def pipeline_group(ctx: click.Context, steps_file: str) -> None:
        ctx.meta["steps_file"] = steps_file
        _show_help_if_bare(ctx)

    @pipeline_group.command(name="generate", help="Generate pipeline script")
    @click.pass_context
    def pipeline_generate(ctx: click.Context) -> None:
        state: _State = ctx.obj
        try:
            generate_script(state.client(), ctx.meta["steps_file"])
        except PipelineError as exc:
            click.echo(f"Error generating script: {exc}")
        else:
            click.echo("Script generated successfully")

    @pipeline_group.command(name="setup", help="link github repo and create trigger")
    @click.pass_context
    def pipeline_setup(ctx: click.Context) -> None:
        state: _State = ctx.obj
        click.echo("setup called")
        try:
            setup_pipeline(state.client(), ctx.meta["steps_file"])
        except PipelineError as exc:
            click.echo(f"Error setting up pipeline: {exc}")
        else:
            click.echo("✅ Pipeline setup successfully")

    # --- plugin -------------------------------------------------------------

    @root.group(name="plugin", invoke_without_command=True, help="Manage pigen plugins.")
    @click.pass_context
    def plugin_group(ctx: click.Context) -> None:
        _show_help_if_bare(ctx)

    @plugin_group.command(name="list", help="List plugins.")
    @click.pass_obj
    def plugin_list(state: _State) -> None:
        click.echo("list called")
        click.echo(state.setting("core-url"))

    @plugin_group.command(name="install", help="Install every plugin of the plugins file.")
    @click.option(
        "-f", "--file", "plugins_file", default=PLUGINS_FILE,
        help="Your pigen plugins file path",
    )
    @click.pass_obj
    def plugin_install(state: _State, plugins_file: str) -> None:
        try:
            state.client(plugins_file).install()
        except PluginError as exc:
            click.echo(f"❌ Error installing plugins: {exc}", err=True, nl=False)
        else:
            click.echo("✅ Plugins installed successfully.")

    @plugin_group.command(name="destroy", help="Destroy an installed plugin.")
    @click.argument("name")
    @click.option(
        "--update-yaml", is_flag=True, default=False,
        help="Update plugins file after destroy",
    )
    @click.pass_context
    def plugin_destroy(ctx: click.Context, name: str, update_yaml: bool) -> None:
        state: _State = ctx.obj
        try:
            state.client(PLUGINS_FILE).destroy(name)
        except PluginError as exc:
            click.echo(f"❌ Failed to destroy plugin: {name} error: {exc}")
            return
        click.echo(f'✅ Plugin "{name}" destroyed successfully.')

        if ctx.get_parameter_source("update_yaml") == ParameterSource.DEFAULT:
            click.echo(
                f'❓ Do you want to remove "{name}" from plugin.yaml as well? [y/N]: ',
                nl=False,
            )
            words = sys.stdin.readline().split()
            update_yaml = bool(words) and words[0] in ("y", "Y")

        if update_yaml:
            try:
                remove_plugin(PLUGINS_FILE, name)
            except (OSError, ValueError) as exc:
                click.echo(f"❌ Failed to update plugin.yaml: {exc}")
                return
            click.echo(f'✅ Plugin "{name}" removed from plugin.yaml successfully.')
        else:
            click.echo("❌ Plugin not removed from plugin.yaml.")
        click.echo("✅ Plugin destroyed successfully.")

    @plugin_group.command(name="output", help="Show the outputs of a plugin.")
    @click.argument("name")
    @click.pass_obj
    def plugin_output(state: _State, name: str) -> None:
        try:
            output = state.client(PLUGINS_FILE).get_output(name)
        except PluginError as exc:
            click.echo(f"❌ Error getting output: {exc}")
        else:
            click.echo(f"Output: {output}")
            click.echo("✅ Output retrieved successfully.")

    @plugin_group.command(name="add", help="Add a plugin.")
    def plugin_add() -> None:
        click.echo("add called")

    # --- project ------------------------------------------------------------

    @root.group(name="project", invoke_without_command=True, help="Manage the pigen project.")
    @click.pass_context
    def project_group(ctx: click.Context) -> None:
        _show_help_if_bare(ctx)

    @project_group.command(name="init", help="Initialise a project.")
    def project_init() -> None:
        click.echo("init called")

    return root


def main(argv: list[str] | None = None) -> int:
    """Run the pigen command; return the exit status."""
    cli = build_cli()
    try:
        result = cli.main(args=argv, prog_name="pigen", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return 1
    except click.Abort:
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    raise SystemExit(main())