"""Tests for address resolution against the registry."""
from __future__ import annotations

import pytest

from knwire.knative.model import ObjectReference, ServiceCategory
from knwire.knative.resolver import AddressResolver
from knwire.knative.uris import MESSAGING_V1ALPHA1, fill_missing_reference_data
from knwire.tier0_core.errors import (
    AddressUnavailableError,
    PassCancelledError,
    UnresolvedEndpointError,
    UpstreamError,
)
from knwire.tier1_runtime.context import pass_scope
from knwire.tier3_platform.registry import InMemoryRegistry


class TestAddressResolver:
    def test_resolves_first_existing_candidate(self, knative_registry):
        resolver = AddressResolver(knative_registry)
        ref, address = resolver.resolve_reference(ServiceCategory.CHANNEL, ObjectReference("orders"), "default")
        assert ref == ObjectReference("orders", "InMemoryChannel", MESSAGING_V1ALPHA1, "default")
        assert address.host == "orders-kn-channel.default.svc.cluster.local"
        assert address.port is None

    def test_candidate_order_wins(self, registry, make_addressable):
        registry.put(make_addressable(MESSAGING_V1ALPHA1, "Channel", "dup", url="http://generic"))
        registry.put(make_addressable(MESSAGING_V1ALPHA1, "InMemoryChannel", "dup", url="http://imc"))
        ref, address = AddressResolver(registry).resolve_reference(
            ServiceCategory.CHANNEL, ObjectReference("dup"), "default"
        )
        assert ref.kind == "Channel"
        assert address.host == "generic"

    def test_kinds_not_served_are_skipped(self, make_addressable):
        # only InMemoryChannel is installed; Channel/KafkaChannel/NatssChannel are unknown kinds
        registry = InMemoryRegistry()
        registry.put(make_addressable(MESSAGING_V1ALPHA1, "InMemoryChannel", "orders", url="http://imc"))
        ref, _ = AddressResolver(registry).resolve_reference(
            ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
        )
        assert ref.kind == "InMemoryChannel"

    def test_missing_target_names_category_and_name(self, knative_registry):
        with pytest.raises(UnresolvedEndpointError) as info:
            AddressResolver(knative_registry).resolve_reference(
                ServiceCategory.CHANNEL, ObjectReference("ghost"), "default"
            )
        assert info.value.category == "channel"
        assert info.value.name == "ghost"
        assert "channel ghost" in str(info.value)

    def test_other_namespace_is_not_found(self, knative_registry):
        with pytest.raises(UnresolvedEndpointError):
            AddressResolver(knative_registry).resolve_reference(
                ServiceCategory.EVENT, ObjectReference("default"), "other"
            )

    def test_empty_candidate_list_is_unresolved(self, knative_registry):
        ref = ObjectReference("default", kind="Nope")
        candidates = fill_missing_reference_data(ServiceCategory.EVENT, ref)
        with pytest.raises(UnresolvedEndpointError):
            AddressResolver(knative_registry).resolve(ServiceCategory.EVENT, candidates, "default", "default")

    def test_not_ready_target_is_unavailable(self, registry, make_addressable):
        registry.put(make_addressable(MESSAGING_V1ALPHA1, "Channel", "orders", url="http://c", ready=False))
        with pytest.raises(AddressUnavailableError, match="Ready=False"):
            AddressResolver(registry).resolve_reference(
                ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
            )

    def test_target_without_address_is_unavailable(self, registry, make_addressable):
        registry.put(make_addressable(MESSAGING_V1ALPHA1, "Channel", "orders"))
        with pytest.raises(AddressUnavailableError, match="no address"):
            AddressResolver(registry).resolve_reference(
                ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
            )

    def test_legacy_hostname_address(self, registry, make_addressable):
        registry.put(make_addressable(
            MESSAGING_V1ALPHA1, "Channel", "orders", hostname="orders-channel.default.svc", ready=None
        ))
        _, address = AddressResolver(registry).resolve_reference(
            ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
        )
        assert address.url == "http://orders-channel.default.svc"

    def test_registry_failures_propagate(self):
        class BrokenRegistry:
            def get(self, api_version, kind, namespace, name):
                raise UpstreamError(user_message="connection refused")

            def list_objects(self, api_version, kind, namespace):
                return []

            def create(self, manifest):
                return None

        with pytest.raises(UpstreamError):
            AddressResolver(BrokenRegistry()).resolve_reference(
                ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
            )

    def test_cancelled_pass_stops_resolution(self, knative_registry):
        with pass_scope("router", "default") as ctx:
            ctx.cancel()
            with pytest.raises(PassCancelledError):
                AddressResolver(knative_registry).resolve_reference(
                    ServiceCategory.CHANNEL, ObjectReference("orders"), "default"
                )
