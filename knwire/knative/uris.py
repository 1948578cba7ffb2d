"""
knwire.knative.uris
────────────────────
Endpoint descriptor handling: comma-separated configuration text is
normalized into canonical ``knative://<category>/<name>[/<suffix>]`` URIs,
turned into object references, and partial references are expanded into the
concrete kinds worth probing in the registry.

Accepted descriptor forms (category taken from the configuration key):
    orders                                    → knative://channel/orders
    default/org.example.created               → knative://event/default/org.example.created
    knative:channel/orders                    → knative://channel/orders
    knative://channel/orders?kind=InMemoryChannel&apiVersion=messaging.knative.dev/v1alpha1
"""
from __future__ import annotations

import re
from urllib.parse import parse_qs, unquote, urlsplit

from knwire.knative.model import ObjectReference, ServiceCategory
from knwire.tier0_core.errors import MalformedReferenceError

SCHEME = "knative"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
_STRIP_CHARS = " \t\"'"


# ── Known addressable kinds, in probe order ──────────────────────────────────

MESSAGING_V1ALPHA1 = "messaging.knative.dev/v1alpha1"
EVENTING_V1ALPHA1 = "eventing.knative.dev/v1alpha1"
SERVING_V1BETA1 = "serving.knative.dev/v1beta1"
SERVING_V1ALPHA1 = "serving.knative.dev/v1alpha1"

KNOWN_KINDS: dict[ServiceCategory, tuple[tuple[str, str], ...]] = {
    ServiceCategory.CHANNEL: (
        (MESSAGING_V1ALPHA1, "Channel"),
        (MESSAGING_V1ALPHA1, "InMemoryChannel"),
        (MESSAGING_V1ALPHA1, "KafkaChannel"),
        (MESSAGING_V1ALPHA1, "NatssChannel"),
    ),
    ServiceCategory.ENDPOINT: (
        (SERVING_V1BETA1, "Service"),
        (SERVING_V1ALPHA1, "Service"),
    ),
    ServiceCategory.EVENT: (
        (EVENTING_V1ALPHA1, "Broker"),
    ),
}


# ── Normalizer ───────────────────────────────────────────────────────────────

def normalize_to_uri(category: ServiceCategory, value: str) -> str:
    """Rewrite a shorthand descriptor into its canonical knative:// URI."""
    if value.startswith(f"{SCHEME}://"):
        return value
    if value.startswith(f"{SCHEME}:"):
        return f"{SCHEME}://{value[len(SCHEME) + 1:].lstrip('/')}"
    if _SCHEME_RE.match(value):
        # foreign scheme, left untouched for the extractor to reject
        return value
    return f"{SCHEME}://{category}/{value.lstrip('/')}"


def normalize_uris(text: str | None, category: ServiceCategory) -> list[str]:
    """
    Split a comma-separated descriptor list into canonical URIs.
    Order is preserved and duplicates are kept.
    """
    if not text:
        return []
    uris: list[str] = []
    for item in text.split(","):
        item = item.strip(_STRIP_CHARS)
        if item:
            uris.append(normalize_to_uri(category, item))
    return uris


# ── Extractor ────────────────────────────────────────────────────────────────

def _split(uri: str):
    try:
        parts = urlsplit(uri)
    except ValueError as exc:
        raise MalformedReferenceError(uri, reason=f"cannot parse ({exc})") from exc
    if parts.scheme != SCHEME:
        raise MalformedReferenceError(uri, reason=f"unsupported scheme {parts.scheme!r}")
    return parts


def _segments(path: str) -> list[str]:
    return [unquote(s) for s in path.split("/") if s]


def uri_category(uri: str) -> ServiceCategory | None:
    """Category encoded in a knative URI (canonical or opaque form), None otherwise."""
    uri = uri.strip(_STRIP_CHARS)
    if not uri.startswith(f"{SCHEME}:"):
        return None
    rest = uri[len(SCHEME) + 1:].lstrip("/")
    head = re.split(r"[/?]", rest, maxsplit=1)[0]
    try:
        return ServiceCategory(head)
    except ValueError:
        return None


def extract_object_reference(uri: str) -> ObjectReference:
    """
    Parse a canonical URI into a (possibly partial) object reference.
    Raises MalformedReferenceError if no name can be found.
    """
    parts = _split(uri)
    segments = _segments(parts.path)
    if not segments:
        raise MalformedReferenceError(uri)
    query = parse_qs(parts.query)
    return ObjectReference(
        name=segments[0],
        kind=query.get("kind", [""])[0],
        api_version=query.get("apiVersion", [""])[0],
    )


def extract_event_type(uri: str) -> str:
    """Event-type suffix of an event URI (second path segment), "" if absent."""
    segments = _segments(_split(uri).path)
    return "/".join(segments[1:])


# ── Candidate expander ───────────────────────────────────────────────────────

def fill_missing_reference_data(
    category: ServiceCategory,
    ref: ObjectReference,
) -> list[ObjectReference]:
    """
    Return the fully qualified references to probe for ``ref``, in order.
    A complete reference is returned as is; a partial one is completed with
    every known kind of the category compatible with what it does specify.
    """
    if ref.is_complete:
        return [ref]
    candidates: list[ObjectReference] = []
    for api_version, kind in KNOWN_KINDS[category]:
        if ref.kind and ref.kind != kind:
            continue
        if ref.api_version and ref.api_version != api_version:
            continue
        candidates.append(ref.with_type(api_version, kind))
    return candidates
