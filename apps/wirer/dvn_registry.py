from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .errors import ValidatorNotFound
from .metadata import is_evm_address
from .models import ZERO_ADDRESS, checksum

LOGGER = logging.getLogger('oapp_wirer.dvns')


def _name_key(name: str) -> str:
    return name.strip().lower()


def _excluded(meta: dict[str, Any]) -> bool:
    # Deprecated DVNs and lzRead-only DVNs cannot verify messaging pathways.
    return bool(meta.get('deprecated')) or bool(meta.get('lzReadCompatible'))


class ValidatorRegistry:
    def __init__(self, addresses: Mapping[str, Mapping[str, str]]) -> None:
        self._addresses = MappingProxyType(
            {name: MappingProxyType(dict(by_network)) for name, by_network in addresses.items()}
        )

    @classmethod
    def from_metadata(
        cls,
        table: Mapping[str, Any],
        chain_keys: Mapping[str, str],
        overrides: Mapping[str, Mapping[str, str]] | None = None
    ) -> ValidatorRegistry:
        addresses: dict[str, dict[str, str]] = {}

        for network_id, chain_key in chain_keys.items():
            chain_entry = table.get(chain_key)
            if not isinstance(chain_entry, dict):
                LOGGER.warning('no dvn metadata network=%s chain_key=%s', network_id, chain_key)
                continue
            dvns = chain_entry.get('dvns')
            if not isinstance(dvns, dict):
                continue

            skipped = 0
            for address, meta in dvns.items():
                if not isinstance(meta, dict) or not is_evm_address(address):
                    continue
                if _excluded(meta):
                    skipped += 1
                    continue
                for name in (meta.get('canonicalName'), meta.get('id')):
                    if not name:
                        continue
                    by_network = addresses.setdefault(_name_key(str(name)), {})
                    by_network.setdefault(network_id, checksum(address))

            LOGGER.debug('loaded dvns network=%s chain_key=%s skipped=%s', network_id, chain_key, skipped)

        for name, by_network in (overrides or {}).items():
            for network_id, address in by_network.items():
                addresses.setdefault(_name_key(name), {})[network_id] = checksum(address)

        return cls(addresses)

    def try_resolve(self, name: str, network_id: str) -> str | None:
        address = self._addresses.get(_name_key(name), {}).get(network_id)
        if address is None or address == ZERO_ADDRESS:
            return None
        return address

    def resolve(self, name: str, network_id: str) -> str:
        address = self.try_resolve(name, network_id)
        if address is None:
            raise ValidatorNotFound(name, network_id)
        return address
