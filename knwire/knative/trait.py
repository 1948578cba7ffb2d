"""
knwire.knative.trait
─────────────────────
Orchestration of one resolution pass for an integration:

    configure()  tri-state options → concrete options (auto-discovery,
                 channel filtering, compat probe)
    apply()      channels → endpoints → events, each sources then sinks;
                 builds the environment descriptor and the wiring list
    run()        configure + apply + create wiring, inside a pass scope

Any error aborts the pass; no partial descriptor is ever returned.

Usage:
    trait = KnativeTrait({"channel-sources": "orders,payments"}, registry=registry)
    result = trait.run(Integration("router", "default", sources=[code]))
    env = result.env_vars   # {"CAMEL_KNATIVE_CONFIGURATION": "..."}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field

from knwire.knative.compat import should_use_compat_mode
from knwire.knative.environment import EnvironmentDescriptor, build_definition
from knwire.knative.model import (
    KNATIVE_HISTORY_HEADER,
    META_FILTER_PREFIX,
    Address,
    EndpointRole,
    ObjectReference,
    ServiceCategory,
    ServiceIdentity,
)
from knwire.knative.resolver import AddressResolver
from knwire.knative.uris import (
    SERVING_V1BETA1,
    extract_event_type,
    extract_object_reference,
    normalize_uris,
)
from knwire.knative.wiring import (
    Wiring,
    WiringAccumulator,
    build_subscription,
    build_trigger,
    submit_wiring,
)
from knwire.tier0_core.config import WiringSettings, get_config
from knwire.tier0_core.errors import WiringError
from knwire.tier0_core.logging import get_logger
from knwire.tier1_runtime.context import pass_scope
from knwire.tier1_runtime.validate import validate_input
from knwire.tier3_platform.catalog import Catalog, collect_uris, get_catalog
from knwire.tier3_platform.registry import Registry, get_registry

log = get_logger(__name__)


class KnativeTraitConfig(BaseModel):
    """User-facing trait properties. ``None`` booleans mean "not set"."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    enabled: bool | None = None
    auto: bool | None = None
    configuration: str = ""
    channel_sources: str = Field(default="", alias="channel-sources")
    channel_sinks: str = Field(default="", alias="channel-sinks")
    endpoint_sources: str = Field(default="", alias="endpoint-sources")
    endpoint_sinks: str = Field(default="", alias="endpoint-sinks")
    event_sources: str = Field(default="", alias="event-sources")
    event_sinks: str = Field(default="", alias="event-sinks")
    filter_source_channels: bool | None = Field(default=None, alias="filter-source-channels")
    knative_08_compat_mode: bool | None = Field(default=None, alias="knative-08-compat-mode")


# list option → (category, role) used for catalog auto-discovery
_LIST_OPTIONS: dict[str, tuple[ServiceCategory, EndpointRole]] = {
    "channel_sources": (ServiceCategory.CHANNEL, EndpointRole.SOURCE),
    "channel_sinks": (ServiceCategory.CHANNEL, EndpointRole.SINK),
    "endpoint_sources": (ServiceCategory.ENDPOINT, EndpointRole.SOURCE),
    "endpoint_sinks": (ServiceCategory.ENDPOINT, EndpointRole.SINK),
    "event_sources": (ServiceCategory.EVENT, EndpointRole.SOURCE),
    "event_sinks": (ServiceCategory.EVENT, EndpointRole.SINK),
}


@dataclass
class Integration:
    name: str
    namespace: str
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedTraitOptions:
    """Options of one pass with every tri-state settled."""
    configuration: str = ""
    channel_sources: str = ""
    channel_sinks: str = ""
    endpoint_sources: str = ""
    endpoint_sinks: str = ""
    event_sources: str = ""
    event_sinks: str = ""
    filter_source_channels: bool = False
    compat_mode: bool = False


@dataclass
class WiringResult:
    descriptor: EnvironmentDescriptor
    wirings: list[Wiring]
    env_vars: dict[str, str]
    created: list[Wiring] = field(default_factory=list)


class KnativeTrait:
    def __init__(
        self,
        config: KnativeTraitConfig | Mapping[str, Any] | None = None,
        *,
        registry: Registry | None = None,
        catalog: Catalog | None = None,
        settings: WiringSettings | None = None,
    ) -> None:
        self.config = validate_input(KnativeTraitConfig, config if config is not None else {})
        self._registry = registry if registry is not None else get_registry()
        self._catalog = catalog if catalog is not None else get_catalog()
        self._settings = settings if settings is not None else get_config()
        self._resolver = AddressResolver(self._registry)

    # ── Configure ─────────────────────────────────────────────────────────────

    def configure(self, integration: Integration) -> ResolvedTraitOptions | None:
        """Settle the options for a pass. None when the trait is disabled."""
        cfg = self.config
        if cfg.enabled is False:
            return None

        lists = {option: getattr(cfg, option) for option in _LIST_OPTIONS}
        filter_channels = cfg.filter_source_channels
        compat = cfg.knative_08_compat_mode

        if cfg.auto is None or cfg.auto:
            for option, (category, role) in _LIST_OPTIONS.items():
                if not lists[option]:
                    lists[option] = ",".join(
                        collect_uris(self._catalog, integration.sources, category, role)
                    )
            channels = set(normalize_uris(lists["channel_sources"], ServiceCategory.CHANNEL))
            if filter_channels is None and len(channels) > 1:
                # the receiver tells channels apart by the history header
                filter_channels = True
            if compat is None:
                compat = should_use_compat_mode(self._registry, integration.namespace)

        options = ResolvedTraitOptions(
            configuration=cfg.configuration,
            filter_source_channels=bool(filter_channels),
            compat_mode=bool(compat),
            **lists,
        )
        log.debug(
            "knative.trait.configured",
            filter_source_channels=options.filter_source_channels,
            compat_mode=options.compat_mode,
        )
        return options

    # ── Apply ─────────────────────────────────────────────────────────────────

    def apply(
        self,
        integration: Integration,
        options: ResolvedTraitOptions,
        existing_wiring: Iterable[Wiring] = (),
    ) -> WiringResult:
        if options.configuration:
            descriptor = EnvironmentDescriptor.deserialize(options.configuration)
        else:
            descriptor = EnvironmentDescriptor()
        wiring = WiringAccumulator(existing_wiring)

        self._configure_channels(integration, options, descriptor, wiring)
        self._configure_endpoints(integration, options, descriptor)
        self._configure_events(integration, options, descriptor, wiring)

        env_vars = {self._settings.environment_variable: descriptor.serialize()}
        log.info(
            "knative.trait.applied",
            services=len(descriptor.services),
            wiring=len(wiring),
        )
        return WiringResult(descriptor=descriptor, wirings=wiring.items, env_vars=env_vars)

    def run(
        self,
        integration: Integration,
        *,
        existing_wiring: Iterable[Wiring] = (),
        submit: bool = True,
        timeout: float | None = None,
    ) -> WiringResult | None:
        """Full pass: configure, apply and (optionally) create the wiring."""
        with pass_scope(integration.name, integration.namespace, timeout=timeout):
            try:
                options = self.configure(integration)
                if options is None:
                    log.info("knative.trait.disabled")
                    return None
                result = self.apply(integration, options, existing_wiring)
                if submit:
                    result.created = submit_wiring(self._registry, result.wirings)
            except WiringError as exc:
                log.error("knative.pass.failed", **exc.to_dict()["error"])
                raise
            return result

    # ── Categories ────────────────────────────────────────────────────────────

    def _resolved(
        self,
        descriptor: EnvironmentDescriptor,
        text: str,
        category: ServiceCategory,
        role: EndpointRole,
        namespace: str,
        skip_duplicates: bool = True,
    ) -> Iterator[tuple[str, ObjectReference, Address]]:
        """
        Resolve every descriptor in ``text``. With ``skip_duplicates`` the
        entries whose service is already in the descriptor are left out,
        before resolution when the reference is complete and after it
        otherwise.
        """
        for uri in normalize_uris(text, category):
            ref = extract_object_reference(uri)
            if skip_duplicates and ref.is_complete and descriptor.contains_service(
                ServiceIdentity.for_reference(ref, role, category)
            ):
                log.debug("knative.endpoint.skipped", category=str(category), name=ref.name)
                continue
            actual, address = self._resolver.resolve_reference(category, ref, namespace)
            if skip_duplicates and descriptor.contains_service(
                ServiceIdentity.for_reference(actual, role, category)
            ):
                log.debug("knative.endpoint.skipped", category=str(category), name=ref.name)
                continue
            yield uri, actual, address

    def _add_sinks(
        self,
        integration: Integration,
        text: str,
        category: ServiceCategory,
        descriptor: EnvironmentDescriptor,
    ) -> None:
        role = EndpointRole.SINK
        for _, ref, address in self._resolved(descriptor, text, category, role, integration.namespace):
            descriptor.add_service(build_definition(role, category, ref, address))

    def _source_definition(
        self,
        category: ServiceCategory,
        ref: ObjectReference,
        extra: Mapping[str, str] | None = None,
    ):
        return build_definition(
            EndpointRole.SOURCE,
            category,
            ref,
            extra_metadata=extra,
            listen_host=self._settings.listen_host,
            listen_port=self._settings.listen_port,
        )

    def _configure_channels(
        self,
        integration: Integration,
        options: ResolvedTraitOptions,
        descriptor: EnvironmentDescriptor,
        wiring: WiringAccumulator,
    ) -> None:
        category = ServiceCategory.CHANNEL
        for _, ref, address in self._resolved(
            descriptor, options.channel_sources, category, EndpointRole.SOURCE, integration.namespace
        ):
            extra = None
            if options.filter_source_channels:
                extra = {META_FILTER_PREFIX + KNATIVE_HISTORY_HEADER: address.netloc}
            descriptor.add_service(self._source_definition(category, ref, extra))
            wiring.add(build_subscription(ref, integration.name, options.compat_mode))

        self._add_sinks(integration, options.channel_sinks, category, descriptor)

    def _configure_endpoints(
        self,
        integration: Integration,
        options: ResolvedTraitOptions,
        descriptor: EnvironmentDescriptor,
    ) -> None:
        category = ServiceCategory.ENDPOINT
        # the integration itself serves its endpoint sources, nothing to resolve
        for uri in normalize_uris(options.endpoint_sources, category):
            ref = extract_object_reference(uri)
            ref = ObjectReference(
                name=ref.name,
                kind="Service",
                api_version=SERVING_V1BETA1,
                namespace=integration.namespace,
            )
            descriptor.add_service(self._source_definition(category, ref))

        self._add_sinks(integration, options.endpoint_sinks, category, descriptor)

    def _configure_events(
        self,
        integration: Integration,
        options: ResolvedTraitOptions,
        descriptor: EnvironmentDescriptor,
        wiring: WiringAccumulator,
    ) -> None:
        category = ServiceCategory.EVENT
        # every entry counts: one broker may be declared with several event types
        for uri, ref, _ in self._resolved(
            descriptor,
            options.event_sources,
            category,
            EndpointRole.SOURCE,
            integration.namespace,
            skip_duplicates=False,
        ):
            wiring.add(build_trigger(ref, integration.name, extract_event_type(uri)))
            descriptor.add_service(self._source_definition(category, ref))

        self._add_sinks(integration, options.event_sinks, category, descriptor)


__all__ = [
    "KnativeTraitConfig", "Integration", "ResolvedTraitOptions", "WiringResult", "KnativeTrait",
]
