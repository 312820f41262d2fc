"""Client for apps running locally: service invocation and publishing to topics."""

from __future__ import annotations

import json
from typing import Iterable, Protocol

from daprcli.listing import ListOutput, list_instances
from daprcli.metadata import RUNTIME_API_VERSION
from daprcli.paths import socket_path
from daprcli.transport import Response, request

_JSON_CONTENT_TYPE = "application/json"
_CLOUD_EVENT_CONTENT_TYPE = "application/cloudevents+json"
_CLOUD_EVENT_KEYS = frozenset({"id", "source", "specversion", "type", "data"})


class ClientError(RuntimeError):
    """A request to a local app failed or could not be addressed."""


class DaprProcess(Protocol):
    """Source of the running app instances."""

    def list(self) -> list[ListOutput]: ...


class LocalProcesses:
    """Instances found among the processes of this machine."""

    def list(self) -> list[ListOutput]:
        return list_instances()


def invoke_endpoint(instance: ListOutput, method: str) -> str:
    """URL that invokes a method on an app through its sidecar."""
    return (
        f"http://127.0.0.1:{instance.http_port}/v{RUNTIME_API_VERSION}"
        f"/invoke/{instance.app_id}/method/{method}"
    )


def find_instance(instances: Iterable[ListOutput], app_id: str) -> ListOutput:
    """The first instance with the app ID; raises ClientError if there is none."""
    for instance in instances:
        if instance.app_id == app_id:
            return instance
    raise ClientError("couldn't find a running Dapr instance")


def _content_type(payload: bytes | str) -> str:
    try:
        event = json.loads(payload)
    except ValueError:
        return _JSON_CONTENT_TYPE
    if isinstance(event, dict) and _CLOUD_EVENT_KEYS <= event.keys():
        return _CLOUD_EVENT_CONTENT_TYPE
    return _JSON_CONTENT_TYPE


def _invoke_result(response: Response) -> str:
    if response.status < 200 or response.status >= 400:
        raise ClientError(response.status_line)
    return response.text if response.body else ""


class Standalone:
    """Talks to the sidecars of apps running on this machine."""

    def __init__(self, process: DaprProcess) -> None:
        self.process = process

    def invoke(
        self,
        app_id: str,
        method: str,
        data: bytes | str = b"",
        verb: str = "POST",
        socket: str = "",
    ) -> str:
        """Call a method on an app and return the body of the answer."""
        instances = self.process.list()
        instance = next((lo for lo in instances if lo.app_id == app_id), None)
        if instance is None:
            raise ClientError(f"app ID {app_id} not found")

        unix_socket = socket_path(socket, app_id, "http") if socket else None
        response = request(
            verb,
            invoke_endpoint(instance, method),
            body=data,
            headers={"Content-Type": _JSON_CONTENT_TYPE},
            unix_socket=unix_socket,
        )
        return _invoke_result(response)

    def publish(
        self,
        publish_app_id: str,
        pubsub_name: str,
        topic: str,
        payload: bytes | str = b"",
        socket: str = "",
    ) -> None:
        """Publish a payload to a topic through an app's sidecar."""
        if not publish_app_id:
            raise ClientError("publishAppID is missing")
        if not pubsub_name:
            raise ClientError("pubsubName is missing")
        if not topic:
            raise ClientError("topic is missing")

        instance = find_instance(self.process.list(), publish_app_id)

        path = f"/v{RUNTIME_API_VERSION}/publish/{pubsub_name}/{topic}"
        if socket:
            url = f"http://unix{path}"
            unix_socket = socket_path(socket, publish_app_id, "http")
        else:
            url = f"http://localhost:{instance.http_port}{path}"
            unix_socket = None

        response = request(
            "POST",
            url,
            body=payload,
            headers={"Content-Type": _content_type(payload)},
            unix_socket=unix_socket,
        )
        if response.status >= 300 or response.status < 200:
            raise ClientError(
                f"unexpected status code {response.status} on publishing to {topic} in {pubsub_name}"
            )


def new_client() -> Standalone:
    """A client for the apps running on this machine."""
    return Standalone(LocalProcesses())