"""Deployment of the pigen core service to Cloud Run."""

from __future__ import annotations

import os
import time
from typing import Any

import requests

SERVICE_ID = "pigen-core"
IMAGE = "fedimersni/pigen-core:latest"
CONTAINER_PORT = 5000
API_ROOT = "https://run.googleapis.com"
INVOKER_ROLE = "roles/run.invoker"
_TOKEN_ENV = "GOOGLE_OAUTH_ACCESS_TOKEN"
_METADATA_TOKEN_URL = (
    "http://metadata.google.internal/computeMetadata/v1/"
    "instance/service-accounts/default/token"
)


class DeployError(Exception):
    """Raised when the core service cannot be deployed."""


class CloudRunDeployer:
    """Creates the pigen core Cloud Run service and opens it to public invocation."""

    def __init__(
        self,
        project_id: str,
        region: str,
        *,
        token: str | None = None,
        session: requests.Session | None = None,
        api_root: str = API_ROOT,
        poll_interval: float = 2.0,
        timeout: float = 600.0,
    ) -> None:
        self.project_id = project_id
        self.region = region
        self.session = session or requests.Session()
        self.api_root = api_root.rstrip("/")
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._access_token = token

    @property
    def _parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.region}"

    def _url(self, name: str) -> str:
        return f"{self.api_root}/v2/{name}"

    def _token(self) -> str:
        if not self._access_token:
            self._access_token = os.environ.get(_TOKEN_ENV) or self._metadata_token()
        return self._access_token

    def _metadata_token(self) -> str:
        try:
            response = self.session.get(
                _METADATA_TOKEN_URL, headers={"Metadata-Flavor": "Google"}, timeout=5
            )
            response.raise_for_status()
            return response.json()["access_token"]
        except (requests.RequestException, ValueError, KeyError) as exc:
            raise DeployError(f"no Google Cloud credentials available: {exc}") from exc

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        headers = {"Authorization": f"Bearer {self._token()}"}
        try:
            return self.session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as exc:
            raise DeployError(str(exc)) from exc

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        if not response.ok:
            raise DeployError(f"HTTP {response.status_code}: {response.text}")
        try:
            data = response.json()
        except ValueError as exc:
            raise DeployError(f"invalid JSON reply: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def service_uri(self) -> str:
        """Return the URI of the existing service, or "" if there is none."""
        response = self._request("GET", self._url(f"{self._parent}/services/{SERVICE_ID}"))
        if response.status_code == 404:
            return ""
        try:
            data = self._json(response)
        except DeployError as exc:
            raise DeployError(f"error checking if service exists: {exc}") from exc
        return data.get("uri") or ""

    def _create(self) -> dict[str, Any]:
        service = {
            "template": {
                "containers": [
                    {
                        "image": IMAGE,
                        "name": SERVICE_ID,
                        "ports": [{"containerPort": CONTAINER_PORT}],
                        "resources": {"limits": {"cpu": "1", "memory": "1G"}},
                    }
                ]
            },
            "ingress": "INGRESS_TRAFFIC_ALL",
        }
        response = self._request(
            "POST",
            self._url(f"{self._parent}/services"),
            params={"serviceId": SERVICE_ID},
            json=service,
        )
        return self._json(response)

    def _wait(self, operation: dict[str, Any]) -> dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        while not operation.get("done"):
            if time.monotonic() > deadline:
                raise DeployError("operation timed out")
            time.sleep(self.poll_interval)
            name = operation.get("name")
            if not name:
                raise DeployError("operation has no name")
            operation = self._json(self._request("GET", self._url(name)))
        error = operation.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise DeployError(str(message))
        return operation.get("response") or {}

    def deploy(self) -> str:
        """Deploy the core service if needed and return its URI."""
        lookup_failed = False
        try:
            uri = self.service_uri()
        except DeployError as exc:
            print(f"error checking if service exists: {exc}")
            print("Trying to create new service...")
            uri, lookup_failed = "", True
        if uri:
            print("Service already exists, returning existing URI...")
            return uri
        if not lookup_failed:
            print("Service does not exist, creating new service...")
        try:
            operation = self._create()
        except DeployError as exc:
            raise DeployError(f"failed to create Cloud Run service: {exc}") from exc
        try:
            service = self._wait(operation)
        except DeployError as exc:
            raise DeployError(
                f"cloud run creator failed to wait for service creation: {exc}"
            ) from exc
        name = service.get("name") or f"{self._parent}/services/{SERVICE_ID}"
        try:
            policy = self._json(self._request("GET", self._url(f"{name}:getIamPolicy")))
        except DeployError as exc:
            raise DeployError(f"error getting IAM policy: {exc}") from exc
        bindings = list(policy.get("bindings") or [])
        bindings.append({"role": INVOKER_ROLE, "members": ["allUsers"]})
        policy["bindings"] = bindings
        try:
            self._json(
                self._request("POST", self._url(f"{name}:setIamPolicy"), json={"policy": policy})
            )
        except DeployError as exc:
            raise DeployError(f"error setting IAM policy: {exc}") from exc
        return service.get("uri") or ""