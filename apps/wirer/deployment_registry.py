from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import DeploymentNotFound
from .metadata import is_evm_address
from .models import NetworkConfig, checksum

LOGGER = logging.getLogger('oapp_wirer.deployments')

PROTOCOL_VERSION = 2


@dataclass(frozen=True)
class DeploymentInfo:
    chain_key: str
    eid: int
    endpoint: str
    send_library: str
    receive_library: str
    executor: str


def _address_of(record: dict[str, Any], key: str) -> str | None:
    entry = record.get(key)
    if not isinstance(entry, dict):
        return None
    address = str(entry.get('address', '')).strip()
    if not is_evm_address(address):
        return None
    return checksum(address)


def _safe_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _v2_records(table: Mapping[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    records: list[tuple[str, dict[str, Any]]] = []
    for chain_key, chain_entry in table.items():
        if not isinstance(chain_entry, dict):
            continue
        deployments = chain_entry.get('deployments')
        if not isinstance(deployments, list):
            continue
        for record in deployments:
            if not isinstance(record, dict):
                continue
            if _safe_int(record.get('version')) != PROTOCOL_VERSION:
                continue
            records.append((str(chain_key), record))
    return records


def _to_info(network: NetworkConfig, chain_key: str, record: dict[str, Any]) -> DeploymentInfo:
    addresses = {
        key: _address_of(record, key)
        for key in ('endpointV2', 'sendUln302', 'receiveUln302', 'executor')
    }
    missing = sorted(key for key, value in addresses.items() if value is None)
    if missing:
        raise DeploymentNotFound(
            network.network_id,
            f"v2 deployment record under {chain_key} is missing {', '.join(missing)}"
        )
    return DeploymentInfo(
        chain_key=chain_key,
        eid=network.eid,
        endpoint=addresses['endpointV2'],  # type: ignore[arg-type]
        send_library=addresses['sendUln302'],  # type: ignore[arg-type]
        receive_library=addresses['receiveUln302'],  # type: ignore[arg-type]
        executor=addresses['executor']  # type: ignore[arg-type]
    )


class DeploymentRegistry:
    def __init__(self, deployments: Mapping[str, DeploymentInfo]) -> None:
        self._deployments = MappingProxyType(dict(deployments))

    @classmethod
    def from_metadata(
        cls,
        table: Mapping[str, Any],
        networks: Mapping[str, NetworkConfig]
    ) -> DeploymentRegistry:
        records = _v2_records(table)
        resolved: dict[str, DeploymentInfo] = {}

        for network_id, network in networks.items():
            candidates = [
                (chain_key, record)
                for chain_key, record in records
                if _safe_int(record.get('eid')) == network.eid
                and (network.chain_key is None or chain_key == network.chain_key)
            ]
            if not candidates:
                reason = f'no v2 deployment record for eid={network.eid}'
                if network.chain_key:
                    reason += f' under {network.chain_key}'
                raise DeploymentNotFound(network_id, reason)

            if len(candidates) > 1:
                LOGGER.debug(
                    'multiple v2 records network=%s eid=%s using chain_key=%s',
                    network_id,
                    network.eid,
                    candidates[0][0]
                )
            chain_key, record = candidates[0]
            resolved[network_id] = _to_info(network, chain_key, record)

        return cls(resolved)

    def lookup(self, network_id: str) -> DeploymentInfo:
        info = self._deployments.get(network_id)
        if info is None:
            raise DeploymentNotFound(network_id)
        return info

    def chain_keys(self) -> dict[str, str]:
        return {network_id: info.chain_key for network_id, info in self._deployments.items()}
