# SPDX-License-Identifier: MIT

"""Snapshot accessor backed by the official Kubernetes Python client."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.stream import stream
from urllib3.exceptions import HTTPError
from websocket import WebSocketException

from kub_diag.collector.base import check_kind
from kub_diag.exceptions import AccessError, ParseError
from kub_diag.models import DynamicResource, ExecResult, GroupVersionKind, Lookup, Outcome, Snapshot

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (HTTPError, OSError)


@dataclass(frozen=True)
class _KindCalls:
    api: str
    namespaced_list: str | None
    all_list: str
    read: str | None


_KIND_CALLS = {
    "Node": _KindCalls("core", None, "list_node", "read_node"),
    "Namespace": _KindCalls("core", None, "list_namespace", "read_namespace"),
    "PersistentVolume": _KindCalls("core", None, "list_persistent_volume", "read_persistent_volume"),
    "Pod": _KindCalls("core", "list_namespaced_pod", "list_pod_for_all_namespaces", "read_namespaced_pod"),
    "Event": _KindCalls("core", "list_namespaced_event", "list_event_for_all_namespaces", "read_namespaced_event"),
    "Service": _KindCalls("core", "list_namespaced_service", "list_service_for_all_namespaces", "read_namespaced_service"),
    "Endpoints": _KindCalls("core", "list_namespaced_endpoints", "list_endpoints_for_all_namespaces", "read_namespaced_endpoints"),
    "PersistentVolumeClaim": _KindCalls(
        "core", "list_namespaced_persistent_volume_claim",
        "list_persistent_volume_claim_for_all_namespaces", "read_namespaced_persistent_volume_claim",
    ),
    "Secret": _KindCalls("core", "list_namespaced_secret", "list_secret_for_all_namespaces", "read_namespaced_secret"),
    "ConfigMap": _KindCalls("core", "list_namespaced_config_map", "list_config_map_for_all_namespaces", "read_namespaced_config_map"),
    "ServiceAccount": _KindCalls(
        "core", "list_namespaced_service_account", "list_service_account_for_all_namespaces",
        "read_namespaced_service_account",
    ),
    "Ingress": _KindCalls("networking", "list_namespaced_ingress", "list_ingress_for_all_namespaces", "read_namespaced_ingress"),
}


def connect(kubeconfig: str | None = None, context: str | None = None) -> client.ApiClient:
    """Load kubeconfig (falling back to in-cluster config) and return an API client."""
    try:
        try:
            config.load_kube_config(
                config_file=os.path.expanduser(kubeconfig) if kubeconfig else None, context=context,
            )
        except ConfigException:
            config.load_incluster_config()
    except ConfigException as exc:
        raise AccessError(f"Failed to load Kubernetes configuration: {exc}") from exc
    return client.ApiClient()


def _access_error(exc: Exception, what: str) -> AccessError:
    if isinstance(exc, ApiException):
        return AccessError(f"{what}: HTTP {exc.status} {exc.reason}", status=exc.status)
    return AccessError(f"{what}: {exc}")


def _names_object(exc: ApiException) -> bool:
    """True when a 404 body is an API Status about a specific object (not a missing API)."""
    try:
        body = json.loads(exc.body or "")
    except (TypeError, ValueError):
        return False
    return (
        isinstance(body, dict)
        and body.get("kind") == "Status"
        and body.get("reason") == "NotFound"
        and bool((body.get("details") or {}).get("name"))
    )


class KubernetesAccessor:
    def __init__(self, api_client: Any):
        self.api_client = api_client
        self.core = client.CoreV1Api(api_client)
        self.networking = client.NetworkingV1Api(api_client)
        self.custom = client.CustomObjectsApi(api_client)
        self.version_api = client.VersionApi(api_client)

    @classmethod
    def from_settings(cls, settings) -> KubernetesAccessor:
        return cls(connect(settings.kubeconfig, settings.context))

    def _api(self, name: str) -> Any:
        return self.core if name == "core" else self.networking

    # -- typed resources -----------------------------------------------

    def version(self) -> Lookup:
        try:
            info = self.version_api.get_code()
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            logger.debug("Version call failed: %s", exc)
            return Lookup.failed(_access_error(exc, "cluster version"))
        return Lookup.found(f"{info.major}.{info.minor}")

    def list(self, kind: str, namespace: str | None = None, field_selector: str | None = None) -> Snapshot:
        check_kind(kind)
        calls = _KIND_CALLS[kind]
        api = self._api(calls.api)
        kwargs: dict[str, Any] = {}
        if field_selector:
            kwargs["field_selector"] = field_selector
        if namespace and calls.namespaced_list:
            func = getattr(api, calls.namespaced_list)
            kwargs["namespace"] = namespace
        else:
            func = getattr(api, calls.all_list)
        try:
            result = func(**kwargs)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            logger.debug("API call %s failed: %s", getattr(func, "__name__", "?"), exc)
            raise _access_error(exc, f"list {kind}") from exc
        items = getattr(result, "items", None)
        if items is None:
            raise AccessError(f"list {kind}: response has no items")
        return Snapshot(kind, tuple(items))

    def get(self, kind: str, name: str, namespace: str | None = None) -> Lookup:
        check_kind(kind)
        calls = _KIND_CALLS[kind]
        func = getattr(self._api(calls.api), calls.read)
        kwargs: dict[str, Any] = {"name": name}
        if calls.namespaced_list:
            kwargs["namespace"] = namespace or "default"
        try:
            return Lookup.found(func(**kwargs))
        except ApiException as exc:
            if exc.status == 404:
                return Lookup.not_found(f"{kind} {name} not found")
            logger.debug("API call %s failed: %s", getattr(func, "__name__", "?"), exc)
            return Lookup.failed(_access_error(exc, f"get {kind} {name}"))
        except _TRANSPORT_ERRORS as exc:
            logger.debug("API call %s failed: %s", getattr(func, "__name__", "?"), exc)
            return Lookup.failed(_access_error(exc, f"get {kind} {name}"))

    def read_log(self, name: str, namespace: str, tail_lines: int) -> Lookup:
        try:
            return Lookup.found(self.core.read_namespaced_pod_log(
                name=name, namespace=namespace, tail_lines=tail_lines,
            ))
        except ApiException as exc:
            if exc.status == 404:
                return Lookup.not_found(f"Pod {name} not found")
            return Lookup.failed(_access_error(exc, f"logs of {namespace}/{name}"))
        except _TRANSPORT_ERRORS as exc:
            return Lookup.failed(_access_error(exc, f"logs of {namespace}/{name}"))

    # -- dynamic resources ---------------------------------------------

    def _dynamic_failure(self, exc: Exception, gvk: GroupVersionKind, what: str) -> Lookup:
        if isinstance(exc, ApiException):
            if exc.status == 404 and _names_object(exc):
                return Lookup.not_found(f"{what} not found")
            if exc.status in (404, 503):
                return Lookup.not_available(f"API {gvk.api_version} ({gvk.plural}) is not served by this cluster")
        logger.debug("Dynamic call for %s failed: %s", gvk, exc)
        return Lookup.failed(_access_error(exc, what))

    def list_dynamic(self, gvk: GroupVersionKind, namespace: str | None = None) -> Lookup:
        try:
            if gvk.namespaced and namespace:
                result = self.custom.list_namespaced_custom_object(gvk.group, gvk.version, namespace, gvk.plural)
            else:
                result = self.custom.list_cluster_custom_object(gvk.group, gvk.version, gvk.plural)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            lookup = self._dynamic_failure(exc, gvk, f"list {gvk.plural}")
            # a list never names an object, so any 404 means the API is missing
            if lookup.outcome == Outcome.NOT_FOUND:
                return Lookup.not_available(lookup.reason)
            return lookup
        items = result.get("items") if isinstance(result, dict) else None
        if not isinstance(items, list):
            return Lookup.failed(AccessError(f"list {gvk.plural}: response has no items"))
        try:
            return Lookup.found(Snapshot(gvk.kind, tuple(DynamicResource.from_object(gvk, i) for i in items)))
        except ParseError as exc:
            return Lookup.failed(AccessError(str(exc)))

    def get_dynamic(self, gvk: GroupVersionKind, name: str, namespace: str | None = None) -> Lookup:
        what = f"{gvk.kind} {namespace + '/' if namespace else ''}{name}"
        try:
            if gvk.namespaced:
                result = self.custom.get_namespaced_custom_object(
                    gvk.group, gvk.version, namespace or "default", gvk.plural, name,
                )
            else:
                result = self.custom.get_cluster_custom_object(gvk.group, gvk.version, gvk.plural, name)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            return self._dynamic_failure(exc, gvk, what)
        try:
            return Lookup.found(DynamicResource.from_object(gvk, result))
        except ParseError as exc:
            return Lookup.failed(AccessError(str(exc)))

    def create_dynamic(self, gvk: GroupVersionKind, body: dict[str, Any], namespace: str | None = None) -> Lookup:
        try:
            if gvk.namespaced:
                result = self.custom.create_namespaced_custom_object(
                    gvk.group, gvk.version, namespace or "default", gvk.plural, body,
                )
            else:
                result = self.custom.create_cluster_custom_object(gvk.group, gvk.version, gvk.plural, body)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            return self._dynamic_failure(exc, gvk, f"create {gvk.kind}")
        try:
            return Lookup.found(DynamicResource.from_object(gvk, result))
        except ParseError as exc:
            return Lookup.failed(AccessError(str(exc)))

    # -- exec ----------------------------------------------------------

    def exec(self, name: str, namespace: str, command: list[str], wait_budget: float) -> ExecResult:
        """Run a command in a pod and collect output until it exits or the budget runs out."""
        try:
            resp = stream(
                self.core.connect_get_namespaced_pod_exec,
                name,
                namespace,
                command=command,
                stderr=True,
                stdin=False,
                stdout=True,
                tty=False,
                _preload_content=False,
            )
        except (ApiException, WebSocketException, *_TRANSPORT_ERRORS) as exc:
            raise _access_error(exc, f"exec in {namespace}/{name}") from exc

        stdout: list[str] = []
        stderr: list[str] = []
        deadline = time.monotonic() + wait_budget
        try:
            while resp.is_open():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                resp.update(timeout=min(remaining, 1.0))
                if resp.peek_stdout():
                    stdout.append(resp.read_stdout())
                if resp.peek_stderr():
                    stderr.append(resp.read_stderr())
            completed = not resp.is_open()
            # output that arrived together with the close frame
            if resp.peek_stdout():
                stdout.append(resp.read_stdout())
            if resp.peek_stderr():
                stderr.append(resp.read_stderr())
        except (WebSocketException, *_TRANSPORT_ERRORS) as exc:
            logger.debug("Exec channel in %s/%s dropped: %s", namespace, name, exc)
            raise _access_error(exc, f"exec in {namespace}/{name}") from exc
        finally:
            resp.close()
        return ExecResult(stdout="".join(stdout), stderr="".join(stderr), completed=completed)
