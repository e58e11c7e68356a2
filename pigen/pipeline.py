"""CI/CD pipeline endpoints of the pigen core: script generation and repo setup."""

from __future__ import annotations

import base64
import binascii
import json
import time
from pathlib import Path
from typing import Any, Mapping

import requests

from .helpers import CoreResponse, data_to_json, read_yaml_file, yaml_to_data
from .plugins import PigenClient, PluginError

_ACTION_KEY = "Action is required"


class PipelineError(Exception):
    """Raised when a pipeline operation fails."""


def _field(body: Mapping[str, Any], name: str) -> Any:
    if name in body:
        return body[name]
    lowered = name.lower()
    return next((value for key, value in body.items() if key.lower() == lowered), None)


def _post(client: PigenClient, route: str, payload: str | bytes) -> requests.Response:
    url = f"{client.endpoint}/api/v1/cicd/{route}"
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    try:
        return client.session.post(
            url, data=data, headers={"Content-Type": "application/json"}
        )
    except requests.RequestException as exc:
        raise PipelineError(f"failed to send request: {exc}") from exc


def _read_steps(client: PigenClient, steps_path: str | Path) -> str:
    try:
        content = read_yaml_file(steps_path)
    except OSError as exc:
        raise PipelineError(f"failed to read pigen steps file: {exc}") from exc
    try:
        return client.parse_file(content)
    except PluginError as exc:
        raise PipelineError(f"failed to replace secrets: {exc}") from exc


def _steps_payload(content: str) -> str:
    try:
        data = yaml_to_data(content)
    except ValueError as exc:
        raise PipelineError(f"failed to unmarshal pigen steps file: {exc}") from exc
    try:
        return data_to_json(data)
    except ValueError as exc:
        raise PipelineError(f"failed to convert pigen steps file to json: {exc}") from exc


def _generate(client: PigenClient, content: str, output_path: Path) -> None:
    payload = _steps_payload(content)
    response = _post(client, "gen_script", payload)
    try:
        core = CoreResponse.from_json(response.content)
    except ValueError as exc:
        raise PipelineError(str(exc)) from exc
    if core.error:
        raise PipelineError(f"core response error : {core.error}")
    body = json.loads(response.content)
    encoded = _field(body, "content") if isinstance(body, dict) else None
    if encoded is None:
        encoded = ""
    if not isinstance(encoded, str):
        raise PipelineError("failed to unmarshal response: content is not a string")
    try:
        script = base64.b64decode(
            encoded.replace("\r", "").replace("\n", ""), validate=True
        )
    except (binascii.Error, ValueError) as exc:
        raise PipelineError(f"failed to decode base64 content: {exc}") from exc
    try:
        output_path.write_bytes(script)
    except OSError as exc:
        print("Error writing file:", exc)


def generate_script(
    client: PigenClient,
    steps_path: str | Path = "pigen-steps.yaml",
    output_path: str | Path = "cloudbuild.yaml",
) -> Path:
    """Have the core generate the build script for a steps file and write it."""
    content = _read_steps(client, steps_path)
    output = Path(output_path)
    try:
        _generate(client, content, output)
    except PipelineError as exc:
        raise PipelineError(f"failed to generate script: {exc}") from exc
    return output


def connect_repo(client: PigenClient, payload: str | bytes) -> str:
    """Ask the core to link the repository; return the action link, or "" if none."""
    response = _post(client, "connect_repo", payload)
    try:
        body = json.loads(response.content)
    except ValueError as exc:
        raise PipelineError(f"failed to unmarshal response: {exc}") from exc
    if body is None:
        return ""
    if not isinstance(body, dict):
        raise PipelineError("failed to unmarshal response: expected a JSON object")
    error = _field(body, "error")
    if error is not None:
        raise PipelineError(f"failed to unmarshal response: core reported {error!r}")
    action = _field(body, _ACTION_KEY)
    if action is None:
        return ""
    if not isinstance(action, str):
        raise PipelineError("failed to unmarshal response: action is not a string")
    return action


def create_trigger(client: PigenClient, payload: str | bytes) -> None:
    """Ask the core to create the build trigger."""
    response = _post(client, "create_trigger", payload)
    try:
        core = CoreResponse.from_json(response.content)
    except ValueError as exc:
        raise PipelineError(str(exc)) from exc
    if core.error:
        raise PipelineError(f"failed to create trigger: {core.error}")
    print("✅ Trigger created successfully")


def setup_pipeline(
    client: PigenClient,
    steps_path: str | Path = "pigen-steps.yaml",
    poll_interval: float = 5.0,
    max_attempts: int = 36,
) -> None:
    """Link the repository, waiting for any user action, then create the trigger."""
    content = _read_steps(client, steps_path)
    payload = _steps_payload(content)
    try:
        action = connect_repo(client, payload)
    except PipelineError as exc:
        raise PipelineError(f"failed to connect repo: {exc}") from exc
    if action:
        print("Action is required, please follow this link to complete the action:", action)
        attempts = 0
        while action and attempts < max_attempts:
            time.sleep(poll_interval)
            try:
                action = connect_repo(client, payload)
            except PipelineError as exc:
                raise PipelineError(f"failed to connect repo: {exc}") from exc
            attempts += 1
        if attempts == max_attempts:
            raise PipelineError(
                "timeout while waiting for action to be completed please run again the command"
            )
    print("✅ Repo connected successfully")
    print("⏳ Creating trigger...")
    try:
        create_trigger(client, payload)
    except PipelineError as exc:
        raise PipelineError(f"failed to create trigger: {exc}") from exc