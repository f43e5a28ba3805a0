from __future__ import annotations

import logging
from typing import Any

from . import abi
from .deployment_registry import DeploymentRegistry
from .models import (
    CONFIG_TYPE_EXECUTOR,
    CONFIG_TYPE_ULN,
    DestState,
    ExecutorConfig,
    PathwayConfig,
    PendingMutation,
    SourceState,
    UlnConfig,
    address_to_bytes32
)
from .options import merge_by_msg_type

LOGGER = logging.getLogger('oapp_wirer.diff')

KIND_SEND_LIBRARY = 'send_library'
KIND_RECEIVE_LIBRARY = 'receive_library'
KIND_PEER = 'peer'
KIND_ULN_CONFIG = 'uln_config'
KIND_EXECUTOR_CONFIG = 'executor_config'
KIND_ENFORCED_OPTIONS = 'enforced_options'


def uln_matches(current: UlnConfig | None, desired: UlnConfig) -> bool:
    """Structural ULN equality; DVN lists must match element-for-element, in order."""
    if current is None:
        return False
    return (
        current.required_dvn_count == desired.required_dvn_count
        and current.optional_dvn_count == desired.optional_dvn_count
        and current.optional_dvn_threshold == desired.optional_dvn_threshold
        and current.confirmations == desired.confirmations
        and list(current.required_dvns) == list(desired.required_dvns)
        and list(current.optional_dvns) == list(desired.optional_dvns)
    )


def executor_matches(current: ExecutorConfig | None, desired: ExecutorConfig) -> bool:
    if current is None:
        return False
    return current.max_message_size == desired.max_message_size and current.executor == desired.executor


def _fmt(value: Any) -> str:
    if value is None:
        return '<unset>'
    if isinstance(value, bytes):
        return f'0x{value.hex()}'
    return str(value)


class DiffEngine:
    def __init__(self, deployments: DeploymentRegistry, *, verbose: bool = False, receive_grace_period: int = 0) -> None:
        self.deployments = deployments
        self.verbose = verbose
        self.receive_grace_period = receive_grace_period

    def desired_send_uln(self, pathway: PathwayConfig) -> UlnConfig:
        return UlnConfig.build(
            confirmations=pathway.confirmations,
            required_dvns=pathway.required_dvns_source,
            optional_dvns=pathway.optional_dvns_source,
            optional_dvn_threshold=pathway.optional_threshold_source
        )

    def desired_receive_uln(self, pathway: PathwayConfig) -> UlnConfig:
        return UlnConfig.build(
            confirmations=pathway.confirmations,
            required_dvns=pathway.required_dvns_dest,
            optional_dvns=pathway.optional_dvns_dest,
            optional_dvn_threshold=pathway.optional_threshold_dest
        )

    def diff_source(self, pathway: PathwayConfig, current: SourceState) -> list[PendingMutation]:
        network_id = pathway.source_network.network_id
        deployment = self.deployments.lookup(network_id)
        app = pathway.source_app
        dst_eid = pathway.dest_network.eid
        label = pathway.label
        mutations: list[PendingMutation] = []

        if not self._same(label, network_id, 'send_library', current.send_library, deployment.send_library):
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=deployment.endpoint,
                    encoded_call=abi.SET_SEND_LIBRARY.encode_call(app, dst_eid, deployment.send_library),
                    description=f'{label} setSendLibrary({deployment.send_library})',
                    kind=KIND_SEND_LIBRARY
                )
            )

        peer = address_to_bytes32(pathway.dest_app)
        if not self._same(label, network_id, 'peer', current.peer, peer):
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=app,
                    encoded_call=abi.SET_PEER.encode_call(dst_eid, peer),
                    description=f'{label} setPeer(eid={dst_eid}, peer={pathway.dest_app})',
                    kind=KIND_PEER
                )
            )

        uln = self.desired_send_uln(pathway)
        matches = uln_matches(current.uln_config, uln)
        self._log_field(label, network_id, 'send_uln_config', current.uln_config, uln, matches)
        if not matches:
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=deployment.endpoint,
                    encoded_call=abi.SET_CONFIG.encode_call(
                        app,
                        deployment.send_library,
                        [(dst_eid, CONFIG_TYPE_ULN, uln.encode())]
                    ),
                    description=(
                        f'{label} setConfig(send ULN confirmations={uln.confirmations} '
                        f'required={uln.required_dvn_count} optional={uln.optional_dvn_count}/{uln.optional_dvn_threshold})'
                    ),
                    kind=KIND_ULN_CONFIG
                )
            )

        executor = ExecutorConfig(max_message_size=pathway.max_message_size, executor=deployment.executor)
        matches = executor_matches(current.executor_config, executor)
        self._log_field(label, network_id, 'executor_config', current.executor_config, executor, matches)
        if not matches:
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=deployment.endpoint,
                    encoded_call=abi.SET_CONFIG.encode_call(
                        app,
                        deployment.send_library,
                        [(dst_eid, CONFIG_TYPE_EXECUTOR, executor.encode())]
                    ),
                    description=(
                        f'{label} setConfig(executor={executor.executor} '
                        f'maxMessageSize={executor.max_message_size})'
                    ),
                    kind=KIND_EXECUTOR_CONFIG
                )
            )

        stale: list[tuple[int, int, bytes]] = []
        for msg_type, encoded in merge_by_msg_type(pathway.enforced_options).items():
            field = f'enforced_options[{msg_type}]'
            if not self._same(label, network_id, field, current.enforced_options.get(msg_type), encoded):
                stale.append((dst_eid, msg_type, encoded))
        if stale:
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=app,
                    encoded_call=abi.SET_ENFORCED_OPTIONS.encode_call(stale),
                    description=f'{label} setEnforcedOptions(msgTypes={[item[1] for item in stale]})',
                    kind=KIND_ENFORCED_OPTIONS
                )
            )

        return mutations

    def diff_dest(self, pathway: PathwayConfig, current: DestState) -> list[PendingMutation]:
        network_id = pathway.dest_network.network_id
        deployment = self.deployments.lookup(network_id)
        app = pathway.dest_app
        src_eid = pathway.source_network.eid
        label = pathway.label
        mutations: list[PendingMutation] = []

        if not self._same(label, network_id, 'receive_library', current.receive_library, deployment.receive_library):
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=deployment.endpoint,
                    encoded_call=abi.SET_RECEIVE_LIBRARY.encode_call(
                        app,
                        src_eid,
                        deployment.receive_library,
                        self.receive_grace_period
                    ),
                    description=f'{label} setReceiveLibrary({deployment.receive_library})',
                    kind=KIND_RECEIVE_LIBRARY
                )
            )

        peer = address_to_bytes32(pathway.source_app)
        if not self._same(label, network_id, 'peer', current.peer, peer):
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=app,
                    encoded_call=abi.SET_PEER.encode_call(src_eid, peer),
                    description=f'{label} setPeer(eid={src_eid}, peer={pathway.source_app})',
                    kind=KIND_PEER
                )
            )

        uln = self.desired_receive_uln(pathway)
        matches = uln_matches(current.uln_config, uln)
        self._log_field(label, network_id, 'receive_uln_config', current.uln_config, uln, matches)
        if not matches:
            mutations.append(
                PendingMutation(
                    target_network=network_id,
                    target_contract=deployment.endpoint,
                    encoded_call=abi.SET_CONFIG.encode_call(
                        app,
                        deployment.receive_library,
                        [(src_eid, CONFIG_TYPE_ULN, uln.encode())]
                    ),
                    description=(
                        f'{label} setConfig(receive ULN confirmations={uln.confirmations} '
                        f'required={uln.required_dvn_count} optional={uln.optional_dvn_count}/{uln.optional_dvn_threshold})'
                    ),
                    kind=KIND_ULN_CONFIG
                )
            )

        return mutations

    def _same(self, label: str, network_id: str, field: str, current: Any, expected: Any) -> bool:
        matches = current is not None and current == expected
        self._log_field(label, network_id, field, current, expected, matches)
        return matches

    def _log_field(self, label: str, network_id: str, field: str, current: Any, expected: Any, matches: bool) -> None:
        if not self.verbose:
            return
        LOGGER.info(
            'pathway=%s network=%s field=%s match=%s current=%s expected=%s',
            label,
            network_id,
            field,
            matches,
            _fmt(current),
            _fmt(expected)
        )
