"""
knwire
──────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from knwire.tier0_core.logging import get_logger
from knwire.tier0_core.errors import (
    WiringError,
    MalformedReferenceError,
    UnresolvedEndpointError,
    AddressUnavailableError,
    SerializationError,
    PassCancelledError,
    ValidationError,
    UnknownKindError,
)
from knwire.tier0_core.config import get_config, WiringSettings

from knwire.tier1_runtime.context import get_context, pass_scope, PassContext

from knwire.tier3_platform.registry import (
    Registry,
    InMemoryRegistry,
    KubernetesRegistry,
    get_registry,
)
from knwire.tier3_platform.catalog import Catalog, DslCatalog

from knwire.knative.model import (
    ServiceCategory,
    EndpointRole,
    ObjectReference,
    Address,
    ServiceDefinition,
    ServiceIdentity,
)
from knwire.knative.environment import EnvironmentDescriptor, build_definition
from knwire.knative.wiring import SubscriptionWiring, TriggerWiring, submit_wiring
from knwire.knative.trait import (
    KnativeTrait,
    KnativeTraitConfig,
    Integration,
    WiringResult,
)

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "WiringError", "MalformedReferenceError", "UnresolvedEndpointError",
    "AddressUnavailableError", "SerializationError", "PassCancelledError",
    "ValidationError", "UnknownKindError",
    # config
    "get_config", "WiringSettings",
    # context
    "get_context", "pass_scope", "PassContext",
    # registry
    "Registry", "InMemoryRegistry", "KubernetesRegistry", "get_registry",
    # catalog
    "Catalog", "DslCatalog",
    # model
    "ServiceCategory", "EndpointRole", "ObjectReference", "Address",
    "ServiceDefinition", "ServiceIdentity",
    # environment
    "EnvironmentDescriptor", "build_definition",
    # wiring
    "SubscriptionWiring", "TriggerWiring", "submit_wiring",
    # trait
    "KnativeTrait", "KnativeTraitConfig", "Integration", "WiringResult",
]
