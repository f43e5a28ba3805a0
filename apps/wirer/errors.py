from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import PendingMutation


class WiringError(Exception):
    exit_code = 2

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class SpecError(WiringError):
    pass


class MetadataError(WiringError):
    pass


class ValidatorNotFound(WiringError):
    def __init__(self, name: str, network_id: str) -> None:
        super().__init__(f'dvn={name!r} does not resolve on network={network_id}')
        self.name = name
        self.network_id = network_id


class DeploymentNotFound(WiringError):
    def __init__(self, network_id: str, reason: str = 'no v2 deployment record') -> None:
        super().__init__(f'network={network_id}: {reason}')
        self.network_id = network_id


class SessionError(WiringError):
    pass


class SubmissionError(WiringError):
    exit_code = 1

    def __init__(self, network_id: str, mutation: PendingMutation, detail: str) -> None:
        super().__init__(f'network={network_id} mutation={mutation.description!r}: {detail}')
        self.network_id = network_id
        self.mutation = mutation
