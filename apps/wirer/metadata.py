from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from .errors import MetadataError


def is_evm_address(value: Any) -> bool:
    return bool(re.fullmatch(r'0x[a-fA-F0-9]{40}', str(value).strip()))


def load_metadata_table(path_value: str, *, label: str) -> dict[str, Any]:
    path = Path(path_value)
    if not path.exists():
        raise MetadataError(f'{label} metadata not found at {path}')

    try:
        payload = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise MetadataError(f'{label} metadata at {path} is not valid json: {exc}') from exc

    if not isinstance(payload, dict):
        raise MetadataError(f'{label} metadata at {path} must be a json object keyed by chain')
    return payload
