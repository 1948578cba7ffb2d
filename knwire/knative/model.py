"""
knwire.knative.model
─────────────────────
Typed building blocks shared by every stage of a resolution pass: service
categories and roles, object references, resolved addresses and the service
definitions that make up the environment descriptor.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import NamedTuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field


class ServiceCategory(StrEnum):
    """Kind of Knative endpoint an integration talks to."""

    CHANNEL = "channel"
    ENDPOINT = "endpoint"
    EVENT = "event"


class EndpointRole(StrEnum):
    """Direction of an endpoint, seen from the integration."""

    SOURCE = "source"
    SINK = "sink"


class Protocol(StrEnum):
    HTTP = "http"
    HTTPS = "https"

    @property
    def default_port(self) -> int:
        return 443 if self is Protocol.HTTPS else 80


# ── Metadata keys understood by the runtime ──────────────────────────────────

META_SERVICE_PATH = "service.path"
META_ENDPOINT_KIND = "camel.endpoint.kind"
META_KNATIVE_API_VERSION = "knative.apiVersion"
META_KNATIVE_KIND = "knative.kind"
META_FILTER_PREFIX = "filter."

KNATIVE_HISTORY_HEADER = "ce-knativehistory"


# ── References ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ObjectReference:
    """Identifies a remote object. kind/api_version may be empty (partial)."""
    name: str
    kind: str = ""
    api_version: str = ""
    namespace: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.kind and self.api_version)

    def with_type(self, api_version: str, kind: str) -> ObjectReference:
        return replace(self, api_version=api_version, kind=kind)

    def __str__(self) -> str:
        if self.is_complete:
            return f"{self.api_version}/{self.kind}/{self.name}"
        return self.name


@dataclass(frozen=True)
class Address:
    """Network location of a ready, addressable target."""
    scheme: str
    host: str
    port: int | None = None
    path: str = ""

    @classmethod
    def parse(cls, url: str) -> Address:
        parts = urlsplit(url)
        if not parts.scheme or not parts.hostname:
            raise ValueError(f"not an absolute url: {url!r}")
        return cls(
            scheme=parts.scheme.lower(),
            host=parts.hostname,
            port=parts.port,
            path=parts.path,
        )

    @property
    def netloc(self) -> str:
        return f"{self.host}:{self.port}" if self.port is not None else self.host

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.path}"

    def __str__(self) -> str:
        return self.url


class ServiceIdentity(NamedTuple):
    """Dedup key of a service definition inside one descriptor."""
    name: str
    role: EndpointRole
    category: ServiceCategory
    type_ref: tuple[str, str]  # (api_version, kind)

    @classmethod
    def for_reference(
        cls,
        ref: ObjectReference,
        role: EndpointRole,
        category: ServiceCategory,
    ) -> ServiceIdentity:
        if not ref.is_complete:
            from knwire.tier0_core.errors import MalformedReferenceError

            raise MalformedReferenceError(str(ref), reason="missing kind or apiVersion")
        return cls(ref.name, role, category, (ref.api_version, ref.kind))


# ── Environment descriptor entries ───────────────────────────────────────────

class ServiceDefinition(BaseModel):
    """One service the runtime integration listens on or sends to."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    service_type: ServiceCategory = Field(alias="type")
    host: str
    port: int
    protocol: Protocol = Protocol.HTTP
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def role(self) -> EndpointRole | None:
        try:
            return EndpointRole(self.metadata.get(META_ENDPOINT_KIND))
        except ValueError:
            return None

    @property
    def identity(self) -> ServiceIdentity | None:
        role = self.role
        if role is None:
            return None
        return ServiceIdentity(
            self.name,
            role,
            self.service_type,
            (
                self.metadata.get(META_KNATIVE_API_VERSION, ""),
                self.metadata.get(META_KNATIVE_KIND, ""),
            ),
        )
