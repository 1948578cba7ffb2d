"""
knwire.knative.compat
──────────────────────
Knative 0.8 compatibility probe. Clusters older than 0.9 do not serve
Subscription from the messaging group; an "unknown kind" answer to a list of
that kind selects the legacy (eventing group) subscription format.
"""
from __future__ import annotations

from knwire.knative.uris import MESSAGING_V1ALPHA1
from knwire.tier0_core.errors import UnknownKindError
from knwire.tier0_core.logging import get_logger
from knwire.tier1_runtime.context import get_context
from knwire.tier3_platform.registry import Registry

log = get_logger(__name__)

PROBE_API_VERSION = MESSAGING_V1ALPHA1
PROBE_KIND = "Subscription"


def should_use_compat_mode(registry: Registry, namespace: str) -> bool:
    """
    True when the registry does not recognize the probe kind. Zero instances
    is not a compat signal; any other error propagates.
    """
    get_context().check()
    try:
        registry.list_objects(PROBE_API_VERSION, PROBE_KIND, namespace)
    except UnknownKindError:
        log.info("knative.compat.enabled", kind=PROBE_KIND, api_version=PROBE_API_VERSION)
        return True
    return False
