"""Tests for tier3_platform modules (registry, api_client, catalog)."""
from __future__ import annotations

import json

import httpx
import pytest

from knwire.knative.model import EndpointRole, ServiceCategory
from knwire.tier0_core.errors import ConflictError, UnknownKindError, UpstreamError
from knwire.tier3_platform.api_client import KubeApiClient
from knwire.tier3_platform.catalog import DslCatalog, collect_uris, filter_uris
from knwire.tier3_platform.registry import (
    InMemoryRegistry,
    KubernetesRegistry,
    Registry,
    _plural,
    get_registry,
)

MESSAGING = "messaging.knative.dev/v1alpha1"


# ── in-memory registry ─────────────────────────────────────────────────────

class TestInMemoryRegistry:
    def test_satisfies_protocol(self, registry):
        assert isinstance(registry, Registry)

    def test_unknown_kind(self):
        with pytest.raises(UnknownKindError):
            InMemoryRegistry().get(MESSAGING, "Channel", "default", "orders")

    def test_get_missing_returns_none(self, registry):
        assert registry.get(MESSAGING, "Channel", "default", "orders") is None

    def test_create_conflict(self, registry):
        manifest = {"apiVersion": MESSAGING, "kind": "Subscription",
                    "metadata": {"name": "s", "namespace": "default"}}
        registry.create(manifest)
        with pytest.raises(ConflictError):
            registry.create(manifest)

    def test_get_registry_uses_memory_backend_in_tests(self):
        import knwire.tier3_platform.registry as _registry

        _registry._reset_registry()
        assert isinstance(get_registry(), InMemoryRegistry)


# ── kubernetes registry ────────────────────────────────────────────────────

_DISCOVERY = {
    "/apis/messaging.knative.dev/v1alpha1": {
        "kind": "APIResourceList",
        "resources": [
            {"name": "channels", "kind": "Channel"},
            {"name": "channels/status", "kind": "Channel"},
            {"name": "subscriptions", "kind": "Subscription"},
        ],
    },
}

_CHANNEL = {
    "apiVersion": MESSAGING,
    "kind": "Channel",
    "metadata": {"name": "orders", "namespace": "default"},
    "status": {"address": {"url": "http://orders-kn-channel.default.svc.cluster.local"}},
}


def _kube_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path in _DISCOVERY:
        return httpx.Response(200, json=_DISCOVERY[path])
    if path == "/apis/messaging.knative.dev/v1alpha1/namespaces/default/channels/orders":
        assert request.headers["Authorization"] == "Bearer t0ken"
        return httpx.Response(200, json=_CHANNEL)
    if path == "/apis/messaging.knative.dev/v1alpha1/namespaces/default/subscriptions":
        if request.method == "POST":
            body = json.loads(request.content)
            if body["metadata"]["name"] == "exists":
                return httpx.Response(409, json={"kind": "Status", "reason": "AlreadyExists"})
            return httpx.Response(201, json=body)
        return httpx.Response(200, json={"kind": "SubscriptionList", "items": []})
    if path == "/apis/messaging.knative.dev/v1alpha1/namespaces/forbidden/subscriptions":
        return httpx.Response(403, json={"kind": "Status", "reason": "Forbidden"})
    return httpx.Response(404, json={"kind": "Status", "reason": "NotFound"})


@pytest.fixture
def kube_registry():
    client = KubeApiClient(
        "https://kube.test",
        token="t0ken",
        transport=httpx.MockTransport(_kube_handler),
    )
    return KubernetesRegistry(client)


class TestKubernetesRegistry:
    def test_get_existing_object(self, kube_registry):
        obj = kube_registry.get(MESSAGING, "Channel", "default", "orders")
        assert obj["status"]["address"]["url"].startswith("http://orders-kn-channel")

    def test_missing_instance_returns_none(self, kube_registry):
        assert kube_registry.get(MESSAGING, "Channel", "default", "ghost") is None

    def test_kind_missing_from_served_group(self, kube_registry):
        with pytest.raises(UnknownKindError):
            kube_registry.get(MESSAGING, "InMemoryChannel", "default", "orders")

    def test_group_not_served(self, kube_registry):
        with pytest.raises(UnknownKindError):
            kube_registry.list_objects("eventing.knative.dev/v1alpha1", "Broker", "default")

    def test_list_known_kind_with_zero_items(self, kube_registry):
        assert kube_registry.list_objects(MESSAGING, "Subscription", "default") == []

    def test_create_and_conflict(self, kube_registry):
        manifest = {"apiVersion": MESSAGING, "kind": "Subscription",
                    "metadata": {"name": "orders-router", "namespace": "default"}}
        kube_registry.create(manifest)
        with pytest.raises(ConflictError):
            kube_registry.create({**manifest, "metadata": {"name": "exists", "namespace": "default"}})

    def test_unexpected_status_is_upstream_error(self, kube_registry):
        with pytest.raises(UpstreamError) as info:
            kube_registry.list_objects(MESSAGING, "Subscription", "forbidden")
        assert info.value.metadata["status_code"] == 403

    def test_transport_failure_is_upstream_error(self):
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = KubeApiClient("https://kube.test", transport=httpx.MockTransport(fail))
        with pytest.raises(UpstreamError):
            KubernetesRegistry(client).get(MESSAGING, "Channel", "default", "orders")

    def test_discovery_is_refreshed_after_ttl(self):
        served: dict = {}
        now = [0.0]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path in served:
                return httpx.Response(200, json=served[request.url.path])
            if request.url.path.endswith("/subscriptions"):
                return httpx.Response(200, json={"kind": "SubscriptionList", "items": []})
            return httpx.Response(404, json={"kind": "Status", "reason": "NotFound"})

        client = KubeApiClient("https://kube.test", transport=httpx.MockTransport(handler))
        registry = KubernetesRegistry(client, discovery_ttl=60.0, clock=lambda: now[0])
        with pytest.raises(UnknownKindError):
            registry.list_objects(MESSAGING, "Subscription", "default")

        # Knative installed after the first lookup
        served.update(_DISCOVERY)
        now[0] = 30.0
        with pytest.raises(UnknownKindError):
            registry.list_objects(MESSAGING, "Subscription", "default")
        now[0] = 61.0
        assert registry.list_objects(MESSAGING, "Subscription", "default") == []

    @pytest.mark.parametrize("kind, plural", [
        ("Channel", "channels"),
        ("InMemoryChannel", "inmemorychannels"),
        ("Broker", "brokers"),
        ("Ingress", "ingresses"),
        ("Policy", "policies"),
    ])
    def test_plural(self, kind, plural):
        assert _plural(kind) == plural


# ── catalog ────────────────────────────────────────────────────────────────

ROUTE = """
from("knative:channel/orders")
    .to("log:info")
    .to("knative:channel/audit")
    .wireTap('knative:endpoint/billing');

from("knative:event/default/org.example.created")
    .toD("knative://channel/archive");
"""


class TestCatalog:
    def test_extract_uris(self, catalog):
        from_uris, to_uris = catalog.extract_uris(ROUTE)
        assert from_uris == ["knative:channel/orders", "knative:event/default/org.example.created"]
        assert to_uris == [
            "log:info",
            "knative:channel/audit",
            "knative:endpoint/billing",
            "knative://channel/archive",
        ]

    def test_filter_uris(self):
        uris = ["log:info", "knative:channel/a", "knative:endpoint/b", "knative://channel/c"]
        assert filter_uris(uris, ServiceCategory.CHANNEL) == ["knative:channel/a", "knative://channel/c"]

    def test_collect_across_sources_in_order(self):
        sources = ['from("knative:channel/a").to("knative:channel/x")', 'from("knative:channel/b")']
        assert collect_uris(DslCatalog(), sources, ServiceCategory.CHANNEL, EndpointRole.SOURCE) == [
            "knative:channel/a",
            "knative:channel/b",
        ]
        assert collect_uris(DslCatalog(), sources, ServiceCategory.CHANNEL, EndpointRole.SINK) == [
            "knative:channel/x",
        ]
