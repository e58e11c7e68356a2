"""The user's pigen settings file and the deployment of the core on first use."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from .cloud_run import CloudRunDeployer, DeployError

Deploy = Callable[[str, str], str]


@dataclass
class CloudProvider:
    """Where the pigen core runs."""

    type: str = ""
    project_id: str = ""
    region: str = ""


@dataclass
class PigenCore:
    """The pigen core service and its endpoint."""

    cloud_provider: CloudProvider = field(default_factory=CloudProvider)
    endpoint: str = ""


@dataclass
class Config:
    """The settings stored under the "config" key of the settings file."""

    pigen_core: PigenCore = field(default_factory=PigenCore)

    def to_dict(self) -> dict[str, Any]:
        """Return the settings as they are written to the file."""
        provider = self.pigen_core.cloud_provider
        return {
            "pigen_core": {
                "cloud_provider": {
                    "type": provider.type,
                    "project_id": provider.project_id,
                    "region": provider.region,
                },
                "endpoint": self.pigen_core.endpoint,
            }
        }

    def init_config(self, path: str | Path | None = None, deploy: Deploy | None = None) -> Path:
        """Deploy the core, record its endpoint and save the settings file."""
        provider = self.pigen_core.cloud_provider
        if provider.type != "GCP":
            raise ValueError(f"unsupported cloud provider: {provider.type}")
        if deploy is None:
            deploy = _deploy_gcp
        try:
            endpoint = deploy(provider.project_id, provider.region)
        except DeployError as exc:
            raise RuntimeError(f"error deploying PigenCore on GCP: {exc}") from exc
        self.pigen_core.endpoint = endpoint

        target = Path(path) if path is not None else default_config_path()
        try:
            settings = load_settings(target)
            settings["config"] = self.to_dict()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(
                yaml.safe_dump(settings, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"error writing config: {exc}") from exc
        return target


def _deploy_gcp(project_id: str, region: str) -> str:
    return CloudRunDeployer(project_id, region).deploy()


def default_config_path() -> Path:
    """Return the settings file in the home directory."""
    return Path.home() / ".pigen.yaml"


def load_settings(path: str | Path | None = None) -> dict[str, Any]:
    """Read the settings file; a missing file gives no settings."""
    target = Path(path) if path is not None else default_config_path()
    if not target.exists():
        return {}
    try:
        data = yaml.safe_load(target.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid settings file {target}: {exc}") from exc
    return dict(data) if isinstance(data, Mapping) else {}


def _lookup(data: Any, name: str) -> Any:
    if not isinstance(data, Mapping):
        return None
    lowered = name.lower()
    return next((value for key, value in data.items() if str(key).lower() == lowered), None)


def core_endpoint(settings: Mapping[str, Any]) -> str:
    """Return the recorded core endpoint, or "" when there is none."""
    value: Any = settings
    for name in ("config", "pigen_core", "endpoint"):
        value = _lookup(value, name)
    return "" if value is None else str(value)