"""
knwire.knative.environment
───────────────────────────
The environment descriptor handed to the runtime integration: an ordered,
deduplicated list of service definitions, serialized into a single
environment variable.

Wire format (version 1):
    {"version":1,"services":[{"name":"orders","type":"channel","host":"0.0.0.0",
      "port":8080,"protocol":"http","metadata":{"service.path":"/", ...}}]}
A payload without "version" is read as version 1.
"""
from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel, Field, field_validator

from knwire.knative.model import (
    META_ENDPOINT_KIND,
    META_KNATIVE_API_VERSION,
    META_KNATIVE_KIND,
    META_SERVICE_PATH,
    Address,
    EndpointRole,
    ObjectReference,
    Protocol,
    ServiceCategory,
    ServiceDefinition,
    ServiceIdentity,
)
from knwire.tier0_core.errors import MalformedReferenceError
from knwire.tier1_runtime.serialize import deserialize, serialize

DESCRIPTOR_VERSION = 1


class EnvironmentDescriptor(BaseModel):
    """Services the runtime integration is wired to, in configuration order."""

    version: int = DESCRIPTOR_VERSION
    services: list[ServiceDefinition] = Field(default_factory=list)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != DESCRIPTOR_VERSION:
            raise ValueError(f"unsupported descriptor version {v}, expected {DESCRIPTOR_VERSION}")
        return v

    def contains_service(self, identity: ServiceIdentity) -> bool:
        return any(s.identity == identity for s in self.services)

    def add_service(self, definition: ServiceDefinition) -> bool:
        """Append ``definition`` unless a service with the same identity exists."""
        identity = definition.identity
        if identity is not None and self.contains_service(identity):
            return False
        self.services.append(definition)
        return True

    def find(self, category: ServiceCategory, name: str) -> list[ServiceDefinition]:
        return [s for s in self.services if s.service_type == category and s.name == name]

    def serialize(self) -> str:
        return serialize(self)

    @classmethod
    def deserialize(cls, text: str | bytes) -> EnvironmentDescriptor:
        """Decode a descriptor. Raises SerializationError on malformed input."""
        return deserialize(text, cls)


def build_definition(
    role: EndpointRole,
    category: ServiceCategory,
    reference: ObjectReference,
    address: Address | None = None,
    path_hint: str | None = None,
    extra_metadata: Mapping[str, str] | None = None,
    *,
    listen_host: str | None = None,
    listen_port: int | None = None,
) -> ServiceDefinition:
    """
    Build the service definition for a resolved reference.

    Sinks target the resolved address (port defaults to the scheme's
    well-known port). Sources always listen on the local listener, since the
    integration itself is the receiver.
    """
    ServiceIdentity.for_reference(reference, role, category)

    metadata = {
        META_ENDPOINT_KIND: str(role),
        META_KNATIVE_API_VERSION: reference.api_version,
        META_KNATIVE_KIND: reference.kind,
    }

    if role is EndpointRole.SINK:
        if address is None:
            raise MalformedReferenceError(str(reference), reason="sink without address")
        try:
            protocol = Protocol(address.scheme)
        except ValueError as exc:
            raise MalformedReferenceError(
                address.url, reason=f"unsupported protocol {address.scheme!r}"
            ) from exc
        host = address.host
        port = address.port or protocol.default_port
        metadata[META_SERVICE_PATH] = address.path or "/"
    else:
        if listen_host is None or listen_port is None:
            from knwire.tier0_core.config import get_config

            cfg = get_config()
            listen_host = listen_host if listen_host is not None else cfg.listen_host
            listen_port = listen_port if listen_port is not None else cfg.listen_port
        protocol = Protocol.HTTP
        host = listen_host
        port = listen_port
        metadata[META_SERVICE_PATH] = path_hint or "/"

    if extra_metadata:
        metadata.update(extra_metadata)

    return ServiceDefinition(
        name=reference.name,
        service_type=category,
        host=host,
        port=port,
        protocol=protocol,
        metadata=metadata,
    )
