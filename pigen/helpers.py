"""YAML and JSON helpers, plugin output cleanup and pigen core responses."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

_TEMPLATE_VALUE = re.compile(r"(?m):[\t\n\f\r ]*(\{\{[^{}]+\}\})")


def _field(body: Mapping[str, Any], name: str) -> Any:
    """Look up a JSON field by name, ignoring case."""
    if name in body:
        return body[name]
    lowered = name.lower()
    return next((value for key, value in body.items() if key.lower() == lowered), None)


@dataclass
class CoreResponse:
    """The generic reply of the pigen core API."""

    error: str = ""
    message: str = ""

    @classmethod
    def from_json(cls, body: str | bytes) -> "CoreResponse":
        """Decode a JSON reply; raise ValueError if it is not a valid response."""
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ValueError(f"failed to unmarshal response: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("failed to unmarshal response: expected a JSON object")
        values = {}
        for name in ("error", "message"):
            value = _field(data, name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"failed to unmarshal response: field {name!r} is not a string")
            values[name] = value
        return cls(**values)

    def raise_for_error(self, prefix: str) -> None:
        """Raise RuntimeError if the core reported an error."""
        if self.error:
            raise RuntimeError(f"{prefix}: {self.error}")


def _trim_wrapped_quotes(text: str) -> str:
    text = text.strip()
    if text.startswith('"') and text.endswith('"'):
        return text.strip('"')
    return text


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return _trim_wrapped_quotes(value)
    if isinstance(value, dict):
        return clean_plugin_output(value)
    if isinstance(value, list):
        value[:] = [_clean(item) for item in value]
    return value


def clean_plugin_output(data: dict[str, Any] | None) -> dict[str, Any]:
    """Strip wrapping double quotes from every string in a nested output, in place."""
    if data is None:
        return {}
    for key, value in data.items():
        data[key] = _clean(value)
    return data


def read_yaml_file(path: str | Path) -> str:
    """Return the text of a YAML file."""
    return Path(path).read_text(encoding="utf-8")


def yaml_to_data(content: str | bytes) -> Any:
    """Parse YAML text into Python data."""
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to unmarshal YAML: {exc}") from exc


def data_to_json(data: Any) -> str:
    """Serialise data as JSON indented by two spaces."""
    try:
        return json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"failed to marshal YAML to JSON: {exc}") from exc


def write_yaml_file(path: str | Path, data: Any) -> None:
    """Write data to a YAML file and report it."""
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    Path(path).write_text(text, encoding="utf-8")
    print(f"✅ Successfully wrote to {path}")


def wrap_templates_in_quotes(content: str) -> str:
    """Quote every unquoted {{...}} template that stands as a mapping value."""
    return _TEMPLATE_VALUE.sub(r': "\1"', content)


def load_yaml_safe(path: str | Path) -> Any:
    """Read a YAML file whose values may hold bare templates and parse it."""
    return yaml_to_data(wrap_templates_in_quotes(read_yaml_file(path)))