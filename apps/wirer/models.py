from __future__ import annotations

from dataclasses import dataclass, field

from eth_abi import decode, encode
from web3 import Web3

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'
ZERO_BYTES32 = b'\x00' * 32

CONFIG_TYPE_EXECUTOR = 1
CONFIG_TYPE_ULN = 2

ULN_CONFIG_ABI = '(uint64,uint8,uint8,uint8,address[],address[])'
EXECUTOR_CONFIG_ABI = '(uint32,address)'

DEFAULT_MAX_MESSAGE_SIZE = 10000


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def address_to_bytes32(address: str) -> bytes:
    return bytes.fromhex(address[2:].lower().rjust(64, '0'))


@dataclass(frozen=True)
class NetworkConfig:
    network_id: str
    eid: int
    rpc: str
    app_address: str
    chain_key: str | None = None


@dataclass(frozen=True)
class EnforcedOption:
    msg_type: int
    lz_receive_gas: int = 0
    lz_receive_value: int = 0
    lz_compose_gas: int = 0
    lz_compose_index: int = 0
    lz_native_drop_amount: int = 0
    lz_native_drop_recipient: str = ZERO_ADDRESS


@dataclass(frozen=True)
class PathwayConfig:
    """One direction of a pathway with every DVN name resolved to an address.

    DVN lists are kept per side because each network runs its own DVN
    contract instances: ``*_source`` feed the send ULN on ``source_network``
    and ``*_dest`` feed the receive ULN on ``dest_network``.
    """

    source_network: NetworkConfig
    dest_network: NetworkConfig
    confirmations: int
    required_dvns_source: tuple[str, ...]
    required_dvns_dest: tuple[str, ...]
    optional_dvns_source: tuple[str, ...] = ()
    optional_dvns_dest: tuple[str, ...] = ()
    optional_threshold_source: int = 0
    optional_threshold_dest: int = 0
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    enforced_options: tuple[EnforcedOption, ...] = ()

    @property
    def source_app(self) -> str:
        return self.source_network.app_address

    @property
    def dest_app(self) -> str:
        return self.dest_network.app_address

    @property
    def label(self) -> str:
        return f'{self.source_network.network_id}->{self.dest_network.network_id}'


@dataclass(frozen=True)
class UlnConfig:
    confirmations: int
    required_dvn_count: int
    optional_dvn_count: int
    optional_dvn_threshold: int
    required_dvns: tuple[str, ...]
    optional_dvns: tuple[str, ...]

    @classmethod
    def build(
        cls,
        *,
        confirmations: int,
        required_dvns: tuple[str, ...],
        optional_dvns: tuple[str, ...] = (),
        optional_dvn_threshold: int = 0
    ) -> UlnConfig:
        return cls(
            confirmations=confirmations,
            required_dvn_count=len(required_dvns),
            optional_dvn_count=len(optional_dvns),
            optional_dvn_threshold=optional_dvn_threshold,
            required_dvns=tuple(checksum(x) for x in required_dvns),
            optional_dvns=tuple(checksum(x) for x in optional_dvns)
        )

    def encode(self) -> bytes:
        return encode(
            [ULN_CONFIG_ABI],
            [
                (
                    self.confirmations,
                    self.required_dvn_count,
                    self.optional_dvn_count,
                    self.optional_dvn_threshold,
                    list(self.required_dvns),
                    list(self.optional_dvns)
                )
            ]
        )

    @classmethod
    def decode(cls, raw: bytes) -> UlnConfig:
        (values,) = decode([ULN_CONFIG_ABI], raw)
        confirmations, required_count, optional_count, threshold, required, optional = values
        return cls(
            confirmations=int(confirmations),
            required_dvn_count=int(required_count),
            optional_dvn_count=int(optional_count),
            optional_dvn_threshold=int(threshold),
            required_dvns=tuple(checksum(x) for x in required),
            optional_dvns=tuple(checksum(x) for x in optional)
        )


@dataclass(frozen=True)
class ExecutorConfig:
    max_message_size: int
    executor: str

    def encode(self) -> bytes:
        return encode([EXECUTOR_CONFIG_ABI], [(self.max_message_size, self.executor)])

    @classmethod
    def decode(cls, raw: bytes) -> ExecutorConfig:
        (values,) = decode([EXECUTOR_CONFIG_ABI], raw)
        return cls(max_message_size=int(values[0]), executor=checksum(values[1]))


# None in any state field means "not configured": unset, still on the
# endpoint default, or unreadable.
@dataclass(frozen=True)
class SourceState:
    send_library: str | None
    peer: bytes | None
    uln_config: UlnConfig | None
    executor_config: ExecutorConfig | None
    enforced_options: dict[int, bytes | None] = field(default_factory=dict)


@dataclass(frozen=True)
class DestState:
    receive_library: str | None
    peer: bytes | None
    uln_config: UlnConfig | None


@dataclass(frozen=True)
class PendingMutation:
    target_network: str
    target_contract: str
    encoded_call: bytes
    description: str
    kind: str

    def as_dict(self) -> dict[str, str]:
        return {
            'network': self.target_network,
            'to': self.target_contract,
            'data': f'0x{self.encoded_call.hex()}',
            'kind': self.kind,
            'description': self.description
        }
