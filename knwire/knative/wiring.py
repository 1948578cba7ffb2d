"""
knwire.knative.wiring
──────────────────────
Companion objects that make endpoints live:
  - Subscription: attaches a source channel to the integration's service
  - Trigger: routes events of one type from a broker to the integration

Builders are pure. The WiringAccumulator collects what a pass emits and
suppresses duplicates: subscriptions by name, triggers by (broker, event type).
submit_wiring() creates the objects in the registry, create-if-absent.
Trigger names end in a digest of (broker, integration, event type), so two
triggers never share a name even when their readable prefixes collide.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Iterable, Union

from knwire.knative.model import ObjectReference
from knwire.knative.uris import EVENTING_V1ALPHA1, MESSAGING_V1ALPHA1, SERVING_V1BETA1
from knwire.tier0_core.errors import ConflictError
from knwire.tier0_core.logging import get_logger
from knwire.tier1_runtime.context import get_context
from knwire.tier3_platform.registry import Registry

log = get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")
_MAX_NAME_LENGTH = 63
_DIGEST_LENGTH = 8


def sanitize_name(name: str) -> str:
    """Turn an arbitrary string into a valid Kubernetes object name."""
    name = _INVALID_NAME_CHARS.sub("-", name.lower())
    name = re.sub(r"-{2,}", "-", name)
    return name[:_MAX_NAME_LENGTH].strip("-")


def _unique_name(prefix: str, *key: str) -> str:
    """
    Sanitized ``prefix`` suffixed with a digest of ``key``. Keys that
    sanitize or truncate to the same prefix still get distinct names.
    """
    digest = hashlib.sha1("\0".join(key).encode()).hexdigest()[:_DIGEST_LENGTH]
    head = sanitize_name(prefix)[: _MAX_NAME_LENGTH - _DIGEST_LENGTH - 1].rstrip("-")
    return f"{head}-{digest}" if head else digest


def _ref_manifest(ref: ObjectReference) -> dict[str, str]:
    return {"apiVersion": ref.api_version, "kind": ref.kind, "name": ref.name}


def _subscriber(integration: str) -> ObjectReference:
    return ObjectReference(name=integration, kind="Service", api_version=SERVING_V1BETA1)


def _spec(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("spec") or {}



@dataclass(frozen=True)
class SubscriptionWiring:
    name: str
    namespace: str | None
    channel: ObjectReference
    subscriber: ObjectReference
    compat: bool = False

    kind = "Subscription"

    @property
    def api_version(self) -> str:
        # Knative 0.8 only served subscriptions from the eventing group
        return EVENTING_V1ALPHA1 if self.compat else MESSAGING_V1ALPHA1

    def to_manifest(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": {
                "channel": _ref_manifest(self.channel),
                "subscriber": {"ref": _ref_manifest(self.subscriber)},
            },
        }

    def matches(self, obj: dict[str, Any]) -> bool:
        """True when ``obj`` attaches the same channel to the same subscriber."""
        spec = _spec(obj)
        channel = spec.get("channel") or {}
        subscriber = (spec.get("subscriber") or {}).get("ref") or {}
        return (
            channel.get("name") == self.channel.name
            and channel.get("kind") == self.channel.kind
            and subscriber.get("name") == self.subscriber.name
        )


@dataclass(frozen=True)
class TriggerWiring:
    name: str
    namespace: str | None
    broker: str
    event_type: str
    subscriber: ObjectReference

    kind = "Trigger"
    api_version = EVENTING_V1ALPHA1

    @property
    def key(self) -> tuple[str, str]:
        return self.broker, self.event_type

    def to_manifest(self) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "broker": self.broker,
            "subscriber": {"ref": _ref_manifest(self.subscriber)},
        }
        if self.event_type:
            spec["filter"] = {"attributes": {"type": self.event_type}}
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": spec,
        }

    def matches(self, obj: dict[str, Any]) -> bool:
        """True when ``obj`` routes the same (broker, event type) to the same subscriber."""
        spec = _spec(obj)
        attributes = (spec.get("filter") or {}).get("attributes") or {}
        subscriber = (spec.get("subscriber") or {}).get("ref") or {}
        return (
            spec.get("broker") == self.broker
            and (attributes.get("type") or "") == self.event_type
            and subscriber.get("name") == self.subscriber.name
        )


Wiring = Union[SubscriptionWiring, TriggerWiring]


def build_subscription(
    channel: ObjectReference,
    integration: str,
    compat: bool = False,
) -> SubscriptionWiring:
    return SubscriptionWiring(
        name=sanitize_name(f"{channel.name}-{integration}"),
        namespace=channel.namespace,
        channel=ObjectReference(name=channel.name, kind=channel.kind, api_version=channel.api_version),
        subscriber=_subscriber(integration),
        compat=compat,
    )


def build_trigger(
    broker: ObjectReference,
    integration: str,
    event_type: str = "",
) -> TriggerWiring:
    prefix = f"{broker.name}-{integration}"
    if event_type:
        prefix = f"{prefix}-{event_type}"
    return TriggerWiring(
        name=_unique_name(prefix, broker.name, integration, event_type),
        namespace=broker.namespace,
        broker=broker.name,
        event_type=event_type,
        subscriber=_subscriber(integration),
    )


class WiringAccumulator:
    """
    Wiring emitted during one pass, in emission order.

    ``existing`` seeds the dedup sets with wiring known from a prior pass;
    those objects are never emitted again.
    """

    def __init__(self, existing: Iterable[Wiring] = ()) -> None:
        self._items: list[Wiring] = []
        self._subscription_names: set[tuple[str | None, str]] = set()
        self._trigger_keys: set[tuple[str, str]] = set()
        for wiring in existing:
            self._remember(wiring)

    def _remember(self, wiring: Wiring) -> bool:
        if isinstance(wiring, TriggerWiring):
            if wiring.key in self._trigger_keys:
                return False
            self._trigger_keys.add(wiring.key)
        else:
            key = (wiring.namespace, wiring.name)
            if key in self._subscription_names:
                return False
            self._subscription_names.add(key)
        return True

    def add(self, wiring: Wiring) -> bool:
        if not self._remember(wiring):
            log.debug("knative.wiring.duplicate", kind=wiring.kind, name=wiring.name)
            return False
        self._items.append(wiring)
        return True

    def has_trigger(self, broker: str, event_type: str) -> bool:
        return (broker, event_type) in self._trigger_keys

    @property
    def items(self) -> list[Wiring]:
        return list(self._items)

    @property
    def subscriptions(self) -> list[SubscriptionWiring]:
        return [w for w in self._items if isinstance(w, SubscriptionWiring)]

    @property
    def triggers(self) -> list[TriggerWiring]:
        return [w for w in self._items if isinstance(w, TriggerWiring)]

    def __len__(self) -> int:
        return len(self._items)


def submit_wiring(registry: Registry, wirings: Iterable[Wiring]) -> list[Wiring]:
    """
    Create each object unless an equivalent one already exists. Returns the
    ones created. An existing object with the same name but a different
    spec raises ConflictError.
    """
    ctx = get_context()
    created: list[Wiring] = []
    for wiring in wirings:
        ctx.check()
        try:
            registry.create(wiring.to_manifest())
        except ConflictError as exc:
            existing = registry.get(wiring.api_version, wiring.kind, wiring.namespace or "", wiring.name)
            if existing is not None and not wiring.matches(existing):
                raise ConflictError(
                    user_message=f"{wiring.kind} {wiring.name} exists with a different spec",
                    kind=wiring.kind,
                    name=wiring.name,
                ) from exc
            log.info("knative.wiring.exists", kind=wiring.kind, name=wiring.name)
            continue
        log.info("knative.wiring.created", kind=wiring.kind, name=wiring.name)
        created.append(wiring)
    return created
