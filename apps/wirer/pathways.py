from __future__ import annotations

import logging
from collections.abc import Mapping

from .dvn_registry import ValidatorRegistry
from .errors import SpecError
from .models import NetworkConfig, PathwayConfig
from .pathway_spec import PathwaySpec, WiringSpec

LOGGER = logging.getLogger('oapp_wirer.pathways')


def _canonical_order(addresses: list[str], label: str) -> tuple[str, ...]:
    # The ULN only accepts DVN lists sorted ascending without duplicates.
    ordered = sorted(addresses, key=lambda address: int(address, 16))
    if len(set(ordered)) != len(ordered):
        raise SpecError(f'pathway={label}: several dvn names resolve to the same address')
    return tuple(ordered)


def _resolve_required(names: list[str], network_id: str, registry: ValidatorRegistry, label: str) -> tuple[str, ...]:
    return _canonical_order([registry.resolve(name, network_id) for name in names], label)


def _resolve_optional(names: list[str], network_id: str, registry: ValidatorRegistry, label: str) -> tuple[str, ...]:
    addresses: list[str] = []
    for name in names:
        address = registry.try_resolve(name, network_id)
        if address is None:
            LOGGER.warning('optional dvn dropped pathway=%s dvn=%r network=%s', label, name, network_id)
            continue
        addresses.append(address)
    return _canonical_order(addresses, label)


def _threshold(requested: int, optional: tuple[str, ...], label: str, network_id: str) -> int:
    if requested <= len(optional):
        return requested
    LOGGER.warning(
        'optional dvn threshold clamped pathway=%s network=%s requested=%s available=%s',
        label,
        network_id,
        requested,
        len(optional)
    )
    return len(optional)


def resolve_direction(
    raw: PathwaySpec,
    source: NetworkConfig,
    dest: NetworkConfig,
    registry: ValidatorRegistry,
    *,
    reverse: bool
) -> PathwayConfig:
    label = f'{source.network_id}->{dest.network_id}'

    required_source = _resolve_required(raw.required_dvns, source.network_id, registry, label)
    required_dest = _resolve_required(raw.required_dvns, dest.network_id, registry, label)
    optional_source = _resolve_optional(raw.optional_dvns, source.network_id, registry, label)
    optional_dest = _resolve_optional(raw.optional_dvns, dest.network_id, registry, label)

    for side_network, required, optional in (
        (source.network_id, required_source, optional_source),
        (dest.network_id, required_dest, optional_dest)
    ):
        if set(required) & set(optional):
            raise SpecError(f'pathway={label} network={side_network}: a dvn is both required and optional')
        if not required and not optional:
            raise SpecError(f'pathway={label} network={side_network}: no dvn resolved')

    return PathwayConfig(
        source_network=source,
        dest_network=dest,
        confirmations=raw.confirmations_for(reverse),
        required_dvns_source=required_source,
        required_dvns_dest=required_dest,
        optional_dvns_source=optional_source,
        optional_dvns_dest=optional_dest,
        optional_threshold_source=_threshold(raw.optional_dvn_threshold, optional_source, label, source.network_id),
        optional_threshold_dest=_threshold(raw.optional_dvn_threshold, optional_dest, label, dest.network_id),
        max_message_size=raw.max_message_size,
        enforced_options=raw.enforced_options_for(reverse)
    )


def resolve_pathway(
    raw: PathwaySpec,
    networks: Mapping[str, NetworkConfig],
    registry: ValidatorRegistry,
    *,
    bidirectional: bool
) -> list[PathwayConfig]:
    source = networks[raw.from_network]
    dest = networks[raw.to_network]

    resolved = [resolve_direction(raw, source, dest, registry, reverse=False)]
    if bidirectional:
        resolved.append(resolve_direction(raw, dest, source, registry, reverse=True))
    return resolved


def resolve_pathways(
    spec: WiringSpec,
    networks: Mapping[str, NetworkConfig],
    registry: ValidatorRegistry
) -> list[PathwayConfig]:
    """Expand every raw pathway, failing on the first unresolvable required DVN."""
    resolved: list[PathwayConfig] = []
    for raw in spec.pathways:
        resolved.extend(resolve_pathway(raw, networks, registry, bidirectional=spec.is_bidirectional(raw)))

    LOGGER.info('resolved pathways raw=%s directional=%s', len(spec.pathways), len(resolved))
    return resolved
