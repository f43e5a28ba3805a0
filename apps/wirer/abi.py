from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from web3 import Web3


@dataclass(frozen=True)
class AbiFunction:
    name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def encode_call(self, *args: Any) -> bytes:
        return self.selector + encode(list(self.inputs), list(args))

    def decode_call(self, calldata: bytes) -> tuple[Any, ...]:
        if calldata[:4] != self.selector:
            raise ValueError(f'calldata is not a {self.signature} call')
        return tuple(decode(list(self.inputs), calldata[4:]))

    def encode_result(self, *values: Any) -> bytes:
        return encode(list(self.outputs), list(values))

    def decode_result(self, data: bytes) -> tuple[Any, ...]:
        return tuple(decode(list(self.outputs), data))


# EndpointV2
IS_DEFAULT_SEND_LIBRARY = AbiFunction('isDefaultSendLibrary', ('address', 'uint32'), ('bool',))
GET_SEND_LIBRARY = AbiFunction('getSendLibrary', ('address', 'uint32'), ('address',))
GET_RECEIVE_LIBRARY = AbiFunction('getReceiveLibrary', ('address', 'uint32'), ('address', 'bool'))
GET_CONFIG = AbiFunction('getConfig', ('address', 'address', 'uint32', 'uint32'), ('bytes',))
SET_SEND_LIBRARY = AbiFunction('setSendLibrary', ('address', 'uint32', 'address'))
SET_RECEIVE_LIBRARY = AbiFunction('setReceiveLibrary', ('address', 'uint32', 'address', 'uint256'))
SET_CONFIG = AbiFunction('setConfig', ('address', 'address', '(uint32,uint32,bytes)[]'))

# OApp
PEERS = AbiFunction('peers', ('uint32',), ('bytes32',))
SET_PEER = AbiFunction('setPeer', ('uint32', 'bytes32'))
ENFORCED_OPTIONS = AbiFunction('enforcedOptions', ('uint32', 'uint16'), ('bytes',))
SET_ENFORCED_OPTIONS = AbiFunction('setEnforcedOptions', ('(uint32,uint16,bytes)[]',))

ALL_FUNCTIONS = (
    IS_DEFAULT_SEND_LIBRARY,
    GET_SEND_LIBRARY,
    GET_RECEIVE_LIBRARY,
    GET_CONFIG,
    SET_SEND_LIBRARY,
    SET_RECEIVE_LIBRARY,
    SET_CONFIG,
    PEERS,
    SET_PEER,
    ENFORCED_OPTIONS,
    SET_ENFORCED_OPTIONS
)


def function_for_selector(selector: bytes) -> AbiFunction:
    for function in ALL_FUNCTIONS:
        if function.selector == selector:
            return function
    raise KeyError(f'unknown selector 0x{selector.hex()}')
