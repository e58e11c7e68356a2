"""Plugin files and the plugin endpoints of the pigen core."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping

import requests
import yaml

from .helpers import (
    CoreResponse,
    clean_plugin_output,
    load_yaml_safe,
    write_yaml_file,
    yaml_to_data,
)
from .templater import TemplateError, pigen_replace

_DEPENDENCY = re.compile(r"\{\{[\t\n\f\r ]*\.Plugins\.([^.}]+)\.[^}]+\}\}")


class PluginError(Exception):
    """Raised when a plugin operation fails."""


def _label(plugin: Any) -> Any:
    meta = plugin.get("plugin") if isinstance(plugin, Mapping) else None
    return meta.get("label") if isinstance(meta, Mapping) else None


def _field(body: Mapping[str, Any], name: str) -> Any:
    lowered = name.lower()
    return next((value for key, value in body.items() if key.lower() == lowered), None)


def extract_template_dependencies(text: str) -> list[str]:
    """Return the plugin labels referenced as {{ .Plugins.<label>.<key> }}, once each."""
    return list(dict.fromkeys(match.group(1) for match in _DEPENDENCY.finditer(text)))


def load_plugins(path: str | Path) -> list[dict[str, Any]]:
    """Read the plugin list of a plugins file."""
    data = load_yaml_safe(path)
    if data is None:
        return []
    if not isinstance(data, Mapping):
        raise ValueError("plugin file must hold a mapping")
    return list(data.get("plugins") or [])


def remove_plugin(path: str | Path, name: str) -> bool:
    """Drop the first plugin labelled name from a plugins file and rewrite it."""
    plugins = load_plugins(path)
    index = next((i for i, plugin in enumerate(plugins) if _label(plugin) == name), None)
    if index is not None:
        print(f"⏳ Updating plugin.yaml: {name}")
        del plugins[index]
    write_yaml_file(path, {"plugins": plugins})
    return index is not None


class PigenClient:
    """Talks to the plugin API of a deployed pigen core."""

    def __init__(
        self,
        endpoint: str,
        plugins_path: str | Path = "pigen-plugins.yaml",
        env_path: str | Path = ".env.pigen",
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.plugins_path = plugins_path
        self.env_path = env_path
        self.session = session or requests.Session()

    def _load(self) -> list[dict[str, Any]]:
        try:
            return load_plugins(self.plugins_path)
        except (OSError, ValueError) as exc:
            raise PluginError(f"failed to read plugin file: {exc}") from exc

    def post(self, plugin: Mapping[str, Any], endpoint: str) -> requests.Response:
        """Send a plugin as JSON to /api/v1/plugin<endpoint>."""
        url = f"{self.endpoint}/api/v1/plugin{endpoint}"
        try:
            body = json.dumps(plugin, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise PluginError(f"failed to marshal plugin data into json: {exc}") from exc
        try:
            return self.session.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as exc:
            raise PluginError(f"failed to send request: {exc}") from exc

    def _core_call(self, plugin: Mapping[str, Any], endpoint: str) -> CoreResponse:
        response = self.post(plugin, endpoint)
        try:
            return CoreResponse.from_json(response.content)
        except ValueError as exc:
            raise PluginError(str(exc)) from exc

    def parse_file(self, content: str) -> str:
        """Fill the outputs of referenced plugins and env values into a pigen file."""
        outputs: dict[str, Any] = {}
        for dep in extract_template_dependencies(content):
            try:
                outputs[dep] = self.get_output(dep)
            except PluginError as exc:
                raise PluginError(f"failed to get output for plugin {dep}: {exc}") from exc
        try:
            return pigen_replace(content, outputs, self.env_path)
        except TemplateError as exc:
            raise PluginError(str(exc)) from exc

    def parse_plugin(self, plugin: Mapping[str, Any]) -> dict[str, Any]:
        """Return the plugin with its template references filled in."""
        text = yaml.safe_dump(dict(plugin), sort_keys=False, allow_unicode=True)
        try:
            parsed = self.parse_file(text)
        except PluginError as exc:
            raise PluginError(f"failed to run plugin output parser: {exc}") from exc
        try:
            result = yaml_to_data(parsed)
        except ValueError as exc:
            raise PluginError(str(exc)) from exc
        return result or {}

    def get_output_data(self, plugin: Mapping[str, Any]) -> dict[str, Any]:
        """Fetch and clean the outputs of one plugin."""
        response = self.post(plugin, "/get_output")
        try:
            body = json.loads(response.content)
        except ValueError as exc:
            raise PluginError(f"failed to unmarshal response: {exc}") from exc
        if not isinstance(body, dict):
            raise PluginError("failed to unmarshal response: expected a JSON object")
        error = _field(body, "error")
        if error:
            raise PluginError(str(error))
        output = _field(body, "output")
        if output is not None and not isinstance(output, dict):
            raise PluginError("failed to unmarshal response: output is not an object")
        return clean_plugin_output(output)

    def get_output(self, name: str) -> dict[str, Any]:
        """Fetch the outputs of the plugin labelled name in the plugins file."""
        for plugin in self._load():
            if _label(plugin) == name:
                print(f"⏳ Outputting plugin: {name}")
                try:
                    parsed = self.parse_plugin(plugin)
                except PluginError as exc:
                    raise PluginError(f"can't parse plugin: {exc}") from exc
                return self.get_output_data(parsed)
        raise PluginError(
            f"plugin {name} not found in the plugin file, this can be caused if plugin "
            "is not installed or plugin isn't installed from this plugins file"
        )

    def get_all_outputs(self, plugins: list[Mapping[str, Any]]) -> dict[str, Any]:
        """Fetch the outputs of every plugin, keyed by label."""
        outputs: dict[str, Any] = {}
        for plugin in plugins:
            label = _label(plugin)
            try:
                outputs[label] = dict(self.get_output_data(plugin))
            except PluginError as exc:
                raise PluginError(f"failed to get output for plugin {label}: {exc}") from exc
        return outputs

    def install(self) -> None:
        """Install every plugin of the plugins file in order."""
        for plugin in self._load():
            label = _label(plugin)
            print(f"⏳ Installing plugin: {label}")
            try:
                parsed = self.parse_plugin(plugin)
            except PluginError as exc:
                raise PluginError(f"can't parse plugin: {exc}") from exc
            core = self._core_call(parsed, "/setup_plugin")
            if core.error:
                raise PluginError(f"failed to install plugin: {core.error}")
            print(f"✅ Plugin installed successfully: {label}")

    def destroy(self, name: str) -> bool:
        """Destroy the plugin labelled name; False if it is not in the file."""
        for plugin in self._load():
            if _label(plugin) != name:
                continue
            print(f"⏳ Destroying plugin: {name}")
            try:
                parsed = self.parse_plugin(plugin)
            except PluginError as exc:
                raise PluginError(f"can't parse plugin: {exc}") from exc
            core = self._core_call(parsed, "/destroy_plugin")
            if core.error:
                raise PluginError(f"failed to destroy plugin: {core.error}")
            print(f"✅ Plugin destroyed successfully: {name}")
            return True
        return False