from __future__ import annotations

from dataclasses import replace

from .models import ZERO_ADDRESS, EnforcedOption, address_to_bytes32

OPTIONS_TYPE_3 = 3
EXECUTOR_WORKER_ID = 1

OPTION_TYPE_LZRECEIVE = 1
OPTION_TYPE_NATIVE_DROP = 2
OPTION_TYPE_LZCOMPOSE = 3


def _uint(value: int, size: int) -> bytes:
    if value < 0 or value >= 1 << (8 * size):
        raise ValueError(f'value {value} does not fit in uint{size * 8}')
    return value.to_bytes(size, byteorder='big')


def _executor_option(option_type: int, payload: bytes) -> bytes:
    return _uint(EXECUTOR_WORKER_ID, 1) + _uint(len(payload) + 1, 2) + _uint(option_type, 1) + payload


def is_noop(option: EnforcedOption) -> bool:
    return not (
        option.lz_receive_gas
        or option.lz_receive_value
        or option.lz_compose_gas
        or option.lz_native_drop_amount
    )


def encode_enforced_option(option: EnforcedOption) -> bytes:
    """Compile an option set into its type-3 executor options encoding.

    Returns ``b''`` when nothing is enforced. Zero values are left out of the
    packed payload the same way the on-chain ``OptionsBuilder`` leaves them
    out, so the result compares byte-for-byte with what ``enforcedOptions``
    returns.
    """
    if is_noop(option):
        return b''

    encoded = _uint(OPTIONS_TYPE_3, 2)

    if option.lz_receive_gas or option.lz_receive_value:
        payload = _uint(option.lz_receive_gas, 16)
        if option.lz_receive_value:
            payload += _uint(option.lz_receive_value, 16)
        encoded += _executor_option(OPTION_TYPE_LZRECEIVE, payload)

    if option.lz_compose_gas:
        payload = _uint(option.lz_compose_index, 2) + _uint(option.lz_compose_gas, 16)
        encoded += _executor_option(OPTION_TYPE_LZCOMPOSE, payload)

    if option.lz_native_drop_amount:
        payload = _uint(option.lz_native_drop_amount, 16) + address_to_bytes32(option.lz_native_drop_recipient)
        encoded += _executor_option(OPTION_TYPE_NATIVE_DROP, payload)

    return encoded


_MERGED_FIELDS = (
    'lz_receive_gas',
    'lz_receive_value',
    'lz_compose_gas',
    'lz_compose_index',
    'lz_native_drop_amount',
    'lz_native_drop_recipient'
)


def _is_set(value: int | str) -> bool:
    if isinstance(value, str):
        return value.lower() != ZERO_ADDRESS
    return value != 0


def merge_options(options: tuple[EnforcedOption, ...]) -> tuple[EnforcedOption, ...]:
    """Fold entries sharing a message type into one option, field by field.

    Raises ``ValueError`` when two entries set the same field to different
    non-zero values.
    """
    by_type: dict[int, EnforcedOption] = {}
    for option in options:
        current = by_type.get(option.msg_type)
        if current is None:
            by_type[option.msg_type] = option
            continue
        updates: dict[str, int | str] = {}
        for name in _MERGED_FIELDS:
            mine, theirs = getattr(current, name), getattr(option, name)
            if not _is_set(theirs):
                continue
            if _is_set(mine) and str(mine).lower() != str(theirs).lower():
                raise ValueError(f'msgType {option.msg_type} sets {name} to both {mine} and {theirs}')
            updates[name] = theirs
        by_type[option.msg_type] = replace(current, **updates)
    return tuple(by_type.values())


def merge_by_msg_type(options: tuple[EnforcedOption, ...]) -> dict[int, bytes]:
    """Encode each message type once, skipping types with nothing to enforce."""
    encoded: dict[int, bytes] = {}
    for option in merge_options(options):
        value = encode_enforced_option(option)
        if value:
            encoded[option.msg_type] = value
    return encoded
