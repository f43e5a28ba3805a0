from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import SessionError, SpecError, SubmissionError
from .models import NetworkConfig, PendingMutation

LOGGER = logging.getLogger('oapp_wirer.network')


class ContractReader(Protocol):
    network_id: str

    def call(self, to: str, data: bytes) -> bytes: ...


class MutationSession(Protocol):
    def __enter__(self) -> MutationSession: ...

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None: ...

    def submit(self, mutation: PendingMutation) -> str: ...


class SessionFactory(Protocol):
    def open_session(self, network_id: str) -> MutationSession: ...


class NetworkClient:
    def __init__(self, network: NetworkConfig, web3: Web3) -> None:
        self.network = network
        self.web3 = web3
        self.lock = threading.Lock()
        self._chain_id: int | None = None

    @property
    def network_id(self) -> str:
        return self.network.network_id

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.web3.eth.chain_id)
        return self._chain_id

    def call(self, to: str, data: bytes) -> bytes:
        return bytes(self.web3.eth.call({'to': Web3.to_checksum_address(to), 'data': data}))


class NetworkSession:
    """Exclusive signing session for one network's batch.

    Entering the session takes the client's lock and reads the signer's
    ``pending`` nonce once; every ``submit`` then uses and advances a local
    counter, so transactions leave in exactly the order they are submitted.
    The lock is not re-entrant: a second session for the same network cannot
    be opened while the first is live.
    """

    def __init__(self, client: NetworkClient, account: LocalAccount, receipt_timeout: int) -> None:
        self.client = client
        self.account = account
        self.receipt_timeout = receipt_timeout
        self._nonce: int | None = None
        self._open = False

    def __enter__(self) -> NetworkSession:
        if not self.client.lock.acquire(blocking=False):
            raise SessionError(f'a signing session is already open for network={self.client.network_id}')
        try:
            self._nonce = int(self.client.web3.eth.get_transaction_count(self.account.address, 'pending'))
        except Exception:
            self.client.lock.release()
            raise
        self._open = True
        LOGGER.info(
            'session opened network=%s signer=%s nonce=%s',
            self.client.network_id,
            self.account.address,
            self._nonce
        )
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self._open = False
        self.client.lock.release()
        LOGGER.info('session closed network=%s next_nonce=%s', self.client.network_id, self._nonce)

    def submit(self, mutation: PendingMutation) -> str:
        if not self._open or self._nonce is None:
            raise SessionError(f'session for network={self.client.network_id} is not open')
        if mutation.target_network != self.client.network_id:
            raise SessionError(
                f'mutation for network={mutation.target_network} submitted on network={self.client.network_id}'
            )

        web3 = self.client.web3
        tx: dict[str, Any] = {
            'from': self.account.address,
            'to': Web3.to_checksum_address(mutation.target_contract),
            'data': mutation.encoded_call,
            'value': 0,
            'nonce': self._nonce,
            'chainId': self.client.chain_id
        }
        try:
            estimate = int(web3.eth.estimate_gas(tx))
            tx['gas'] = estimate + estimate // 5
            tx['gasPrice'] = int(web3.eth.gas_price)
            signed = self.account.sign_transaction(tx)
            tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise SubmissionError(self.client.network_id, mutation, str(exc)) from exc

        # The nonce is consumed once the node accepted the transaction.
        self._nonce += 1
        tx_hash_hex = Web3.to_hex(tx_hash)

        try:
            receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as exc:
            raise SubmissionError(self.client.network_id, mutation, f'no receipt for tx_hash={tx_hash_hex}: {exc}') from exc

        if int(receipt['status']) != 1:
            raise SubmissionError(self.client.network_id, mutation, f'reverted tx_hash={tx_hash_hex}')

        LOGGER.info(
            'mutation confirmed network=%s kind=%s tx_hash=%s block=%s',
            self.client.network_id,
            mutation.kind,
            tx_hash_hex,
            receipt['blockNumber']
        )
        return tx_hash_hex


def _http_web3(timeout: int) -> Callable[[NetworkConfig], Web3]:
    def factory(network: NetworkConfig) -> Web3:
        return Web3(Web3.HTTPProvider(network.rpc, request_kwargs={'timeout': timeout}))

    return factory


class NetworkPool:
    def __init__(
        self,
        networks: Mapping[str, NetworkConfig],
        *,
        account: LocalAccount | None = None,
        rpc_timeout: int = 30,
        receipt_timeout: int = 180,
        web3_factory: Callable[[NetworkConfig], Web3] | None = None
    ) -> None:
        self.networks = networks
        self.account = account
        self.receipt_timeout = receipt_timeout
        self._web3_factory = web3_factory or _http_web3(rpc_timeout)
        self._clients: dict[str, NetworkClient] = {}

    def client(self, network_id: str) -> NetworkClient:
        client = self._clients.get(network_id)
        if client is None:
            network = self.networks[network_id]
            if not network.rpc:
                raise SpecError(f'network={network_id} has no rpc url')
            client = NetworkClient(network, self._web3_factory(network))
            self._clients[network_id] = client
        LOGGER.debug('switching context network=%s', network_id)
        return client

    def open_session(self, network_id: str) -> NetworkSession:
        if self.account is None:
            raise SessionError('PRIVATE_KEY is required to open a signing session')
        return NetworkSession(self.client(network_id), self.account, self.receipt_timeout)
