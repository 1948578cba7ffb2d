"""
knwire test configuration.

All tests run against the in-memory registry, no cluster required.
Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import os

import pytest

# ── Force test-safe settings for all tests ────────────────────────────────
# These must be set before any knwire modules are imported.

os.environ.setdefault("KNWIRE_ENV", "test")
os.environ.setdefault("KNWIRE_REGISTRY_BACKEND", "memory")
os.environ.setdefault("KNWIRE_ERROR_BACKEND", "none")
os.environ.setdefault("KNWIRE_LOG_LEVEL", "WARNING")


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_module_singletons():
    """
    Reset cached settings and provider singletons between tests.
    This ensures each test gets fresh providers with no state bleed.
    """
    import knwire.tier0_core.config as _config
    import knwire.tier3_platform.registry as _registry

    orig_registry = _registry._registry

    yield

    _registry._registry = orig_registry
    _config._reset_config()


def _addressable(
    api_version: str,
    kind: str,
    name: str,
    namespace: str = "default",
    *,
    url: str | None = None,
    hostname: str | None = None,
    ready: bool | None = True,
) -> dict:
    status: dict = {}
    if ready is not None:
        status["conditions"] = [{"type": "Ready", "status": "True" if ready else "False"}]
    address = {}
    if url:
        address["url"] = url
    if hostname:
        address["hostname"] = hostname
    if address:
        status["address"] = address
    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace},
        "status": status,
    }


@pytest.fixture
def make_addressable():
    """Factory for addressable object manifests (channel, service, broker)."""
    return _addressable


@pytest.fixture
def registry():
    """Empty in-memory registry serving every Knative kind the engine uses."""
    from knwire.tier3_platform.registry import InMemoryRegistry
    return InMemoryRegistry.with_knative_kinds()


@pytest.fixture
def knative_registry(registry):
    """
    Registry seeded with a small Knative installation in namespace "default":
      channels  orders (InMemoryChannel), payments (Channel)
      services  billing (serving v1beta1)
      brokers   default, broker1
    """
    m = "messaging.knative.dev/v1alpha1"
    registry.put(_addressable(m, "InMemoryChannel", "orders",
                              url="http://orders-kn-channel.default.svc.cluster.local"))
    registry.put(_addressable(m, "Channel", "payments",
                              url="http://payments-kn-channel.default.svc.cluster.local"))
    registry.put(_addressable("serving.knative.dev/v1beta1", "Service", "billing",
                              url="http://billing.default.svc.cluster.local"))
    registry.put(_addressable("eventing.knative.dev/v1alpha1", "Broker", "default",
                              url="http://default-broker.default.svc.cluster.local"))
    registry.put(_addressable("eventing.knative.dev/v1alpha1", "Broker", "broker1",
                              url="http://broker1-broker.default.svc.cluster.local:8080"))
    return registry


@pytest.fixture
def settings():
    """Fresh settings object for the test environment."""
    from knwire.tier0_core.config import WiringSettings
    return WiringSettings()


@pytest.fixture
def catalog():
    from knwire.tier3_platform.catalog import DslCatalog
    return DslCatalog()
