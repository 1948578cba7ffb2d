"""
knwire.tier3_platform.catalog
──────────────────────────────
Catalog collaborator that classifies the endpoint URIs an integration's source
code consumes from and produces to. The engine only uses it to auto-populate
endpoint lists the user left empty.

DslCatalog understands the Camel fluent DSL (Java, Groovy, Kotlin, JS):
    from("knative:channel/orders").to("knative:endpoint/billing")
"""
from __future__ import annotations

import re
from typing import Iterable, Protocol, runtime_checkable

from knwire.knative.model import EndpointRole, ServiceCategory
from knwire.knative.uris import uri_category


@runtime_checkable
class Catalog(Protocol):
    def extract_uris(self, source: str) -> tuple[list[str], list[str]]: ...


_QUOTED = r"""\s*\(\s*["']([^"']+)["']"""
_FROM_RE = re.compile(r"\b(?:from|pollEnrich)" + _QUOTED)
_TO_RE = re.compile(r"\.(?:to|toD|toF|wireTap|enrich)" + _QUOTED)


class DslCatalog:
    """Regex-based URI scanner for the fluent route DSL."""

    def extract_uris(self, source: str) -> tuple[list[str], list[str]]:
        from_uris = [m.group(1) for m in _FROM_RE.finditer(source)]
        to_uris = [m.group(1) for m in _TO_RE.finditer(source)]
        return from_uris, to_uris


def filter_uris(uris: Iterable[str], category: ServiceCategory) -> list[str]:
    """Keep the knative URIs of the given category, in order."""
    return [u for u in uris if uri_category(u) == category]


def collect_uris(
    catalog: Catalog,
    sources: Iterable[str],
    category: ServiceCategory,
    role: EndpointRole,
) -> list[str]:
    """
    URIs of ``category`` found across all sources, in catalog order:
    consumed URIs for sources, produced URIs for sinks.
    """
    items: list[str] = []
    for source in sources:
        from_uris, to_uris = catalog.extract_uris(source)
        items.extend(filter_uris(from_uris if role is EndpointRole.SOURCE else to_uris, category))
    return items


_catalog: Catalog | None = None


def get_catalog() -> Catalog:
    global _catalog
    if _catalog is None:
        _catalog = DslCatalog()
    return _catalog


__all__ = ["Catalog", "DslCatalog", "filter_uris", "collect_uris", "get_catalog"]
