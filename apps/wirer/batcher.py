from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import PendingMutation


class MutationBatch:
    """Append-only mutations per target network, in discovery order.

    Networks iterate in the order their first mutation arrived. A call that is
    already queued for the same contract on the same network is dropped, so a
    storage slot shared by two pathway directions is written once.
    """

    def __init__(self) -> None:
        self._by_network: dict[str, list[PendingMutation]] = {}
        self._seen: set[tuple[str, str, bytes]] = set()

    def add(self, mutation: PendingMutation) -> bool:
        key = (mutation.target_network, mutation.target_contract.lower(), mutation.encoded_call)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._by_network.setdefault(mutation.target_network, []).append(mutation)
        return True

    def extend(self, mutations: Iterable[PendingMutation]) -> None:
        for mutation in mutations:
            self.add(mutation)

    def networks(self) -> list[str]:
        return list(self._by_network)

    def mutations_for(self, network_id: str) -> tuple[PendingMutation, ...]:
        return tuple(self._by_network.get(network_id, ()))

    def __iter__(self) -> Iterator[tuple[str, tuple[PendingMutation, ...]]]:
        for network_id, mutations in self._by_network.items():
            yield network_id, tuple(mutations)

    def __len__(self) -> int:
        return sum(len(mutations) for mutations in self._by_network.values())

    def __bool__(self) -> bool:
        return bool(self._by_network)

    def as_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            network_id: [mutation.as_dict() for mutation in mutations]
            for network_id, mutations in self._by_network.items()
        }
