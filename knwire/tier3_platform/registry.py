"""
knwire.tier3_platform.registry
───────────────────────────────
Registry collaborator, the remote object store the engine resolves
addresses against and submits wiring to. Two implementations:
  - InMemoryRegistry (tests / local dev)
  - KubernetesRegistry (API server over httpx)

Contract (all blocking):
  get(api_version, kind, namespace, name)  → object dict | None
  list_objects(api_version, kind, namespace) → list of object dicts
  create(manifest)                          → None, ConflictError if present
Every method raises UnknownKindError when the kind itself is not served.

Configure via: KNWIRE_REGISTRY_BACKEND=kubernetes|memory
"""
from __future__ import annotations

import copy
import time
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from knwire.tier0_core.errors import ConflictError, NotFoundError, UnknownKindError
from knwire.tier3_platform.api_client import KubeApiClient


@runtime_checkable
class Registry(Protocol):
    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None: ...
    def list_objects(self, api_version: str, kind: str, namespace: str) -> list[dict[str, Any]]: ...
    def create(self, manifest: dict[str, Any]) -> None: ...


def _key_of(manifest: dict[str, Any]) -> tuple[str, str, str, str]:
    meta = manifest.get("metadata", {})
    return (
        manifest["apiVersion"],
        manifest["kind"],
        meta.get("namespace") or "",
        meta["name"],
    )


class InMemoryRegistry:
    """In-process object store for tests and local dev. NOT a cluster."""

    def __init__(self, kinds: Iterable[tuple[str, str]] = ()) -> None:
        self._kinds: set[tuple[str, str]] = set(kinds)
        self._objects: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self.created: list[dict[str, Any]] = []

    @classmethod
    def with_knative_kinds(cls, *, legacy: bool = False) -> InMemoryRegistry:
        """
        Registry serving every kind the engine probes or creates.
        ``legacy=True`` mimics Knative 0.8: subscriptions only exist in the
        eventing group.
        """
        from knwire.knative.uris import EVENTING_V1ALPHA1, KNOWN_KINDS, MESSAGING_V1ALPHA1

        kinds = {k for entries in KNOWN_KINDS.values() for k in entries}
        kinds.add((EVENTING_V1ALPHA1, "Trigger"))
        if legacy:
            kinds.add((EVENTING_V1ALPHA1, "Subscription"))
        else:
            kinds.add((MESSAGING_V1ALPHA1, "Subscription"))
        return cls(kinds)

    def _require_kind(self, api_version: str, kind: str) -> None:
        if (api_version, kind) not in self._kinds:
            raise UnknownKindError(api_version, kind)

    def put(self, manifest: dict[str, Any]) -> None:
        """Store or replace an object, registering its kind. Seeding helper."""
        self._kinds.add((manifest["apiVersion"], manifest["kind"]))
        self._objects[_key_of(manifest)] = copy.deepcopy(manifest)

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        self._require_kind(api_version, kind)
        obj = self._objects.get((api_version, kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def list_objects(self, api_version: str, kind: str, namespace: str) -> list[dict[str, Any]]:
        self._require_kind(api_version, kind)
        return [
            copy.deepcopy(obj)
            for (av, k, ns, _), obj in self._objects.items()
            if av == api_version and k == kind and ns == namespace
        ]

    def create(self, manifest: dict[str, Any]) -> None:
        key = _key_of(manifest)
        self._require_kind(key[0], key[1])
        if key in self._objects:
            raise ConflictError(user_message=f"{key[1]} {key[3]} already exists")
        self._objects[key] = copy.deepcopy(manifest)
        self.created.append(copy.deepcopy(manifest))


def _plural(kind: str) -> str:
    lower = kind.lower()
    if lower.endswith(("s", "x", "ch", "sh")):
        return lower + "es"
    if lower.endswith("y") and lower[-2:-1] not in "aeiou":
        return lower[:-1] + "ies"
    return lower + "s"


class KubernetesRegistry:
    """
    Registry backed by the Kubernetes REST API.

    Whether a kind is served is decided from API discovery
    (``/apis/<group>/<version>``) so that an unknown kind and a missing
    instance, both 404 on the object path, can be told apart. Discovery
    answers are cached for ``discovery_ttl`` seconds so that installing or
    upgrading Knative is picked up by later passes.
    """

    def __init__(
        self,
        client: KubeApiClient,
        *,
        discovery_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._discovery_ttl = discovery_ttl
        self._clock = clock
        self._served: dict[str, tuple[float, set[str]]] = {}

    @staticmethod
    def _group_path(api_version: str) -> str:
        if "/" in api_version:
            return f"/apis/{api_version}"
        return f"/api/{api_version}"

    def _collection_path(self, api_version: str, kind: str, namespace: str) -> str:
        return f"{self._group_path(api_version)}/namespaces/{namespace}/{_plural(kind)}"

    def _served_kinds(self, api_version: str) -> set[str]:
        cached = self._served.get(api_version)
        now = self._clock()
        if cached is None or now - cached[0] >= self._discovery_ttl:
            try:
                resources = self._client.get(self._group_path(api_version))
            except NotFoundError:
                kinds: set[str] = set()
            else:
                kinds = {
                    r["kind"]
                    for r in resources.get("resources", [])
                    if "/" not in r.get("name", "")  # skip subresources
                }
            self._served[api_version] = (now, kinds)
            return kinds
        return cached[1]

    def _require_kind(self, api_version: str, kind: str) -> None:
        if kind not in self._served_kinds(api_version):
            raise UnknownKindError(api_version, kind)

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        self._require_kind(api_version, kind)
        try:
            return self._client.get(f"{self._collection_path(api_version, kind, namespace)}/{name}")
        except NotFoundError:
            return None

    def list_objects(self, api_version: str, kind: str, namespace: str) -> list[dict[str, Any]]:
        self._require_kind(api_version, kind)
        body = self._client.get(self._collection_path(api_version, kind, namespace))
        return list(body.get("items") or [])

    def create(self, manifest: dict[str, Any]) -> None:
        api_version, kind, namespace, _ = _key_of(manifest)
        self._require_kind(api_version, kind)
        self._client.post(self._collection_path(api_version, kind, namespace), json=manifest)


# ── Provider registry ─────────────────────────────────────────────────────────

_registry: Registry | None = None


def get_registry() -> Registry:
    global _registry
    if _registry is not None:
        return _registry

    from knwire.tier0_core.config import get_config

    if get_config().registry_backend == "memory":
        _registry = InMemoryRegistry.with_knative_kinds()
    else:
        _registry = KubernetesRegistry(
            KubeApiClient.from_settings(),
            discovery_ttl=get_config().discovery_ttl,
        )
    return _registry


def _reset_registry() -> None:
    global _registry
    _registry = None


__all__ = [
    "Registry", "InMemoryRegistry", "KubernetesRegistry",
    "get_registry",
]
