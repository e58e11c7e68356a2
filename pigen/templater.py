"""Rendering of pigen files: {{ .Plugins.<label>.<key> }} and {{ .ENV.<name> }}."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Mapping

from dotenv import dotenv_values

_OPEN = "{{"
_CLOSE = "}}"
_SPACES = " \t\r\n"
_PATH = re.compile(r"\.|(?:\.[^\W\d]\w*)+")
_MISSING = object()


class TemplateError(Exception):
    """Raised when a template cannot be parsed or executed."""


def _format(value: Any) -> str:
    if value is _MISSING:
        return "<no value>"
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda item: str(item[0]))
        return "map[" + " ".join(f"{_format(k)}:{_format(v)}" for k, v in items) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format(item) for item in value) + "]"
    return str(value)


def _resolve(data: Any, expr: str) -> Any:
    if expr == ".":
        return data
    value = data
    for depth, name in enumerate(expr[1:].split(".")):
        if value is _MISSING or value is None:
            raise TemplateError(f"nil pointer evaluating {expr}")
        if not isinstance(value, Mapping):
            raise TemplateError(
                f"can't evaluate field {name} in type {type(value).__name__}"
            )
        if name in value:
            value = value[name]
        elif isinstance(value, defaultdict) and value.default_factory is not None:
            value = value.default_factory()
        elif depth == 0:
            raise TemplateError(f"can't evaluate field {name}")
        else:
            value = _MISSING
    return value


def _evaluate(expr: str, data: Any) -> str:
    if expr.startswith("/*"):
        if not expr.endswith("*/") or len(expr) < 4:
            raise TemplateError("unclosed comment")
        return ""
    if not expr:
        raise TemplateError("missing value for command")
    if not _PATH.fullmatch(expr):
        raise TemplateError(f"unsupported template action: {expr!r}")
    return _format(_resolve(data, expr))


def render_template(text: str, data: Any) -> str:
    """Render field-path actions such as {{ .A.b }} against nested mappings.

    The top-level mapping acts as a record: an unknown first field is an error.
    Deeper missing keys print "<no value>", or the default of a defaultdict.
    Trim markers ({{- and -}}) and comments ({{/* */}}) are honoured.
    """
    parts: list[str] = []
    pos = 0
    trim_next = False
    while True:
        start = text.find(_OPEN, pos)
        literal = text[pos:] if start < 0 else text[pos:start]
        if trim_next:
            literal = literal.lstrip(_SPACES)
        if start < 0:
            parts.append(literal)
            break
        end = text.find(_CLOSE, start + len(_OPEN))
        if end < 0:
            raise TemplateError(f"unclosed action at offset {start}")
        inner = text[start + len(_OPEN):end]
        if inner[:1] == "-" and len(inner) > 1 and inner[1] in _SPACES:
            literal = literal.rstrip(_SPACES)
            inner = inner[1:]
        trim_next = len(inner) >= 2 and inner[-1] == "-" and inner[-2] in _SPACES
        if trim_next:
            inner = inner[:-1]
        parts.append(literal)
        parts.append(_evaluate(inner.strip(_SPACES), data))
        pos = end + len(_CLOSE)
    return "".join(parts)


def load_env_file(path: str | Path) -> dict[str, str]:
    """Read a dotenv file; a missing file raises OSError."""
    with open(path, encoding="utf-8") as stream:
        values = dotenv_values(stream=stream)
    return {key: value or "" for key, value in values.items()}


def pigen_replace(
    content: str,
    plugin_outputs: Mapping[str, Any] | None,
    env_path: str | Path = ".env.pigen",
) -> str:
    """Fill plugin outputs and variables from the env file into a pigen file."""
    try:
        env = load_env_file(env_path)
    except OSError as exc:
        raise TemplateError(f"failed to load .env file: {exc}") from exc
    data = {"Plugins": dict(plugin_outputs or {}), "ENV": defaultdict(str, env)}
    return render_template(content, data)