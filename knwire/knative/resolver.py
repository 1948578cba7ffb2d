"""
knwire.knative.resolver
────────────────────────
Address resolution: probe candidate kinds of a named target in order and
return the first one that exists, together with its network address.

Outcomes:
  first existing candidate, ready and addressable → (reference, Address)
  first existing candidate, not ready / no address → AddressUnavailableError
  no candidate exists                             → UnresolvedEndpointError
Candidate kinds the registry does not serve (CRD not installed) are skipped.
"""
from __future__ import annotations

from typing import Any, Sequence

from knwire.knative.model import Address, ObjectReference, ServiceCategory
from knwire.knative.uris import fill_missing_reference_data
from knwire.tier0_core.errors import (
    AddressUnavailableError,
    UnknownKindError,
    UnresolvedEndpointError,
)
from knwire.tier0_core.logging import get_logger
from knwire.tier1_runtime.context import get_context
from knwire.tier3_platform.registry import Registry

log = get_logger(__name__)


def _ready_condition(status: dict[str, Any]) -> str | None:
    """Status of the Ready condition, None when the object reports no conditions."""
    conditions = status.get("conditions") or []
    if not conditions:
        return None
    for condition in conditions:
        if condition.get("type") == "Ready":
            return str(condition.get("status", "Unknown"))
    return "Unknown"


def address_of(category: ServiceCategory, ref: ObjectReference, obj: dict[str, Any]) -> Address:
    """Extract the address of a ready addressable object."""
    status = obj.get("status") or {}
    ready = _ready_condition(status)
    if ready is not None and ready != "True":
        raise AddressUnavailableError(category, ref.name, reason=f"Ready={ready}")

    address = status.get("address") or {}
    url = address.get("url")
    if not url and address.get("hostname"):
        # pre-v1beta1 addressables only report a cluster-local hostname
        url = f"http://{address['hostname']}"
    if not url:
        raise AddressUnavailableError(category, ref.name, reason="no address in status")
    try:
        return Address.parse(url)
    except ValueError as exc:
        raise AddressUnavailableError(category, ref.name, reason=str(exc)) from exc


class AddressResolver:
    """Read-only resolver bound to one registry."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def resolve(
        self,
        category: ServiceCategory,
        candidates: Sequence[ObjectReference],
        namespace: str,
        name: str,
    ) -> tuple[ObjectReference, Address]:
        ctx = get_context()
        for candidate in candidates:
            ctx.check()
            try:
                obj = self._registry.get(candidate.api_version, candidate.kind, namespace, name)
            except UnknownKindError:
                log.debug(
                    "knative.candidate.kind_not_served",
                    api_version=candidate.api_version,
                    kind=candidate.kind,
                )
                continue
            if obj is None:
                continue
            ref = ObjectReference(
                name=name,
                kind=candidate.kind,
                api_version=candidate.api_version,
                namespace=namespace,
            )
            address = address_of(category, ref, obj)
            log.info(
                "knative.endpoint.resolved",
                category=str(category),
                name=name,
                kind=ref.kind,
                api_version=ref.api_version,
                url=address.url,
            )
            return ref, address
        raise UnresolvedEndpointError(category, name)

    def resolve_reference(
        self,
        category: ServiceCategory,
        ref: ObjectReference,
        namespace: str,
    ) -> tuple[ObjectReference, Address]:
        """Expand ``ref`` into candidate kinds and resolve the first match."""
        candidates = fill_missing_reference_data(category, ref)
        return self.resolve(category, candidates, namespace, ref.name)
