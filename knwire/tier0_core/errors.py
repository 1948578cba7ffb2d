"""
knwire.tier0_core.errors
─────────────────────────
Error taxonomy for the wiring engine. Every failure of a resolution pass is a
WiringError subclass with a stable code; raising one automatically reports it
if an error backend is configured.

Two families:
  - pass errors (malformed input, unresolved / unavailable targets, bad
    descriptors, cancellation) abort the whole pass
  - registry errors (not found, unknown kind, conflict, upstream) are raised by
    Registry implementations and interpreted by the engine

Select backend via: KNWIRE_ERROR_BACKEND=sentry|otel|none
"""
from __future__ import annotations

import os
from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class WiringError(Exception):
    """
    Base class for all engine errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: short human-readable description
    - detail: internal context (defaults to user_message)
    - metadata: structured fields for logs
    """

    code: str = "wiring_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Knative wiring failed.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
                **self.metadata,
            }
        }


# ── Pass errors ───────────────────────────────────────────────────────────────

class MalformedReferenceError(WiringError):
    """An endpoint descriptor cannot be parsed into an object reference."""
    code = "malformed_reference"

    def __init__(self, uri: str, reason: str = "cannot find name") -> None:
        self.uri = uri
        super().__init__(
            user_message=f"{reason} in uri {uri!r}",
            uri=uri,
        )


class UnresolvedEndpointError(WiringError):
    """No candidate kind of the named target exists in the registry."""
    code = "unresolved_endpoint"

    def __init__(self, category: str, name: str) -> None:
        self.category = str(category)
        self.name = name
        super().__init__(
            user_message=f"cannot find {self.category} {name}",
            category=self.category,
            name=name,
        )


class AddressUnavailableError(WiringError):
    """The target exists but is not ready or exposes no address yet."""
    code = "address_unavailable"

    def __init__(self, category: str, name: str, reason: str = "not addressable") -> None:
        self.category = str(category)
        self.name = name
        self.reason = reason
        super().__init__(
            user_message=f"cannot determine address of {self.category} {name}: {reason}",
            category=self.category,
            name=name,
        )


class SerializationError(WiringError):
    """An environment descriptor could not be encoded or decoded."""
    code = "serialization_error"


class PassCancelledError(WiringError):
    """The pass deadline expired or the pass was cancelled."""
    code = "pass_cancelled"


class ValidationError(WiringError):
    """Input validation failure."""
    code = "validation_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Validation failed.",
        fields: dict | None = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(code, user_message, **metadata)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class ConfigurationError(WiringError):
    """Misconfiguration detected at startup."""
    code = "configuration_error"


# ── Registry errors ───────────────────────────────────────────────────────────

class RegistryError(WiringError):
    """Base class for errors reported by a Registry implementation."""
    code = "registry_error"


class NotFoundError(RegistryError):
    """The requested object instance does not exist."""
    code = "not_found"


class UnknownKindError(RegistryError):
    """The registry does not recognize the resource kind (API group not served)."""
    code = "unknown_kind"

    def __init__(self, api_version: str, kind: str) -> None:
        self.api_version = api_version
        self.kind = kind
        super().__init__(
            user_message=f"no matches for kind {kind!r} in version {api_version!r}",
            api_version=api_version,
            kind=kind,
        )


class ConflictError(RegistryError):
    """The object already exists."""
    code = "conflict"


class UpstreamError(RegistryError):
    """Transport failure or unexpected response from the registry."""
    code = "upstream_error"


# ── Error capture backend ─────────────────────────────────────────────────────

def _capture(error: WiringError) -> None:
    """Send error to configured backend. Called automatically by WiringError.__init__."""
    # read from the environment: settings loading itself raises ConfigurationError
    backend = os.getenv("KNWIRE_ERROR_BACKEND", "none").lower()
    if backend == "none":
        return
    if backend == "sentry":
        _capture_sentry(error)
    elif backend == "otel":
        _capture_otel(error)


def _capture_sentry(error: WiringError) -> None:
    try:
        import sentry_sdk
    except ImportError:
        return
    # Registry errors are routinely interpreted by the engine, report them as warnings
    if isinstance(error, RegistryError):
        sentry_sdk.capture_message(
            str(error),
            level="warning",
            extras={"code": error.code, **error.metadata},
        )
    else:
        sentry_sdk.capture_exception(error)


def _capture_otel(error: WiringError) -> None:
    try:
        from opentelemetry import trace
    except ImportError:
        return
    span = trace.get_current_span()
    span.record_exception(error)
    span.set_status(trace.StatusCode.ERROR, str(error))
