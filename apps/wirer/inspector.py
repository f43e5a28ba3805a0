from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from . import abi
from .deployment_registry import DeploymentRegistry
from .models import (
    CONFIG_TYPE_EXECUTOR,
    CONFIG_TYPE_ULN,
    ZERO_BYTES32,
    DestState,
    ExecutorConfig,
    PathwayConfig,
    SourceState,
    UlnConfig,
    checksum
)
from .network import ContractReader
from .options import merge_by_msg_type

LOGGER = logging.getLogger('oapp_wirer.inspector')

T = TypeVar('T')


class StateInspector:
    def __init__(self, reader_for: Callable[[str], ContractReader], deployments: DeploymentRegistry) -> None:
        self._reader_for = reader_for
        self.deployments = deployments

    def read_source_state(self, pathway: PathwayConfig) -> SourceState:
        network_id = pathway.source_network.network_id
        reader = self._reader_for(network_id)
        deployment = self.deployments.lookup(network_id)
        app = pathway.source_app
        dst_eid = pathway.dest_network.eid

        send_library: str | None = None
        is_default = self._read(reader, deployment.endpoint, abi.IS_DEFAULT_SEND_LIBRARY, app, dst_eid)
        if is_default is not None and not is_default[0]:
            current = self._read(reader, deployment.endpoint, abi.GET_SEND_LIBRARY, app, dst_eid)
            if current is not None:
                send_library = checksum(current[0])

        enforced_options: dict[int, bytes | None] = {}
        for msg_type in merge_by_msg_type(pathway.enforced_options):
            stored = self._read(reader, app, abi.ENFORCED_OPTIONS, dst_eid, msg_type)
            enforced_options[msg_type] = bytes(stored[0]) if stored is not None else None

        return SourceState(
            send_library=send_library,
            peer=self._peer(reader, app, dst_eid),
            uln_config=self._config(
                reader,
                deployment.endpoint,
                app,
                deployment.send_library,
                dst_eid,
                CONFIG_TYPE_ULN,
                UlnConfig.decode
            ),
            executor_config=self._config(
                reader,
                deployment.endpoint,
                app,
                deployment.send_library,
                dst_eid,
                CONFIG_TYPE_EXECUTOR,
                ExecutorConfig.decode
            ),
            enforced_options=enforced_options
        )

    def read_dest_state(self, pathway: PathwayConfig) -> DestState:
        network_id = pathway.dest_network.network_id
        reader = self._reader_for(network_id)
        deployment = self.deployments.lookup(network_id)
        app = pathway.dest_app
        src_eid = pathway.source_network.eid

        receive_library: str | None = None
        current = self._read(reader, deployment.endpoint, abi.GET_RECEIVE_LIBRARY, app, src_eid)
        if current is not None and not current[1]:
            receive_library = checksum(current[0])

        return DestState(
            receive_library=receive_library,
            peer=self._peer(reader, app, src_eid),
            uln_config=self._config(
                reader,
                deployment.endpoint,
                app,
                deployment.receive_library,
                src_eid,
                CONFIG_TYPE_ULN,
                UlnConfig.decode
            )
        )

    def _peer(self, reader: ContractReader, app: str, eid: int) -> bytes | None:
        result = self._read(reader, app, abi.PEERS, eid)
        if result is None:
            return None
        peer = bytes(result[0])
        if peer == ZERO_BYTES32:
            return None
        return peer

    def _config(
        self,
        reader: ContractReader,
        endpoint: str,
        app: str,
        library: str,
        eid: int,
        config_type: int,
        decoder: Callable[[bytes], T]
    ) -> T | None:
        result = self._read(reader, endpoint, abi.GET_CONFIG, app, library, eid, config_type)
        if result is None or not result[0]:
            return None
        try:
            return decoder(bytes(result[0]))
        except Exception as exc:
            LOGGER.warning(
                'config decode failed network=%s eid=%s config_type=%s: %s',
                reader.network_id,
                eid,
                config_type,
                exc
            )
            return None

    def _read(self, reader: ContractReader, to: str, function: abi.AbiFunction, *args: Any) -> tuple[Any, ...] | None:
        # A failed read means "not configured"; the diff then forces a mutation.
        try:
            return function.decode_result(reader.call(to, function.encode_call(*args)))
        except Exception as exc:
            LOGGER.warning('read failed network=%s call=%s to=%s: %s', reader.network_id, function.name, to, exc)
            return None
