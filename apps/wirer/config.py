from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}


def _network_suffix(network_id: str) -> str:
    return network_id.upper().replace('-', '_')


def rpc_url_from_env(network_id: str) -> str:
    """RPC fallback for networks whose document entry carries no ``rpc``."""
    return os.getenv(f'RPC_URL_{_network_suffix(network_id)}', os.getenv('RPC_URL', '')).strip()


@dataclass(frozen=True)
class Settings:
    app_name: str
    check_only: bool
    verbose: bool
    scope: Literal['both', 'source', 'dest']
    private_key: str
    log_level: str
    deployments_path: str
    dvns_path: str
    rpc_timeout_seconds: int
    tx_receipt_timeout_seconds: int
    receive_library_grace_period: int
    prometheus_pushgateway: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    scope = os.getenv('WIRE_SCOPE', 'both').strip().lower()
    if scope not in {'both', 'source', 'dest'}:
        scope = 'both'

    return Settings(
        app_name=os.getenv('APP_NAME', 'oapp-wirer'),
        check_only=_env_bool('CHECK_ONLY', False),
        verbose=_env_bool('VERBOSE', False),
        scope=scope,  # type: ignore[arg-type]
        private_key=os.getenv('PRIVATE_KEY', '').strip(),
        log_level=os.getenv('LOG_LEVEL', 'INFO').strip().upper(),
        deployments_path=os.getenv('LAYERZERO_DEPLOYMENTS_PATH', 'layerzero-deployments.json'),
        dvns_path=os.getenv('LAYERZERO_DVNS_PATH', 'layerzero-dvns.json'),
        rpc_timeout_seconds=int(os.getenv('RPC_TIMEOUT_SECONDS', '30')),
        tx_receipt_timeout_seconds=int(os.getenv('TX_RECEIPT_TIMEOUT_SECONDS', '180')),
        receive_library_grace_period=int(os.getenv('RECEIVE_LIBRARY_GRACE_PERIOD', '0')),
        prometheus_pushgateway=os.getenv('PROMETHEUS_PUSHGATEWAY', '').strip()
    )
