from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from .batcher import MutationBatch
from .errors import SessionError, SubmissionError
from .metrics import MUTATIONS_SUBMITTED_TOTAL, SUBMISSION_FAILURES_TOTAL
from .network import SessionFactory

LOGGER = logging.getLogger('oapp_wirer.broadcast')


class BatchState(enum.Enum):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class NetworkResult:
    network_id: str
    state: BatchState = BatchState.PENDING
    submitted: list[str] = field(default_factory=list)
    remaining: int = 0
    error: str | None = None

    def as_dict(self) -> dict:
        return {
            'network': self.network_id,
            'state': self.state.value,
            'submitted': list(self.submitted),
            'remaining': self.remaining,
            'error': self.error
        }


@dataclass
class BroadcastReport:
    results: list[NetworkResult] = field(default_factory=list)

    @property
    def failed(self) -> list[NetworkResult]:
        return [result for result in self.results if result.state is BatchState.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed


class BroadcastExecutor:
    def __init__(self, sessions: SessionFactory) -> None:
        self.sessions = sessions
        self._drained: set[str] = set()

    def execute(self, batch: MutationBatch) -> BroadcastReport:
        report = BroadcastReport(
            results=[NetworkResult(network_id=network_id) for network_id in batch.networks()]
        )
        for result in report.results:
            self._drain(result, batch)
        return report

    def _drain(self, result: NetworkResult, batch: MutationBatch) -> None:
        network_id = result.network_id
        if network_id in self._drained:
            raise SessionError(f'network={network_id} was already broadcast in this run')
        self._drained.add(network_id)

        mutations = batch.mutations_for(network_id)
        result.remaining = len(mutations)
        result.state = BatchState.IN_PROGRESS
        LOGGER.info('broadcasting network=%s mutations=%s', network_id, len(mutations))

        try:
            with self.sessions.open_session(network_id) as session:
                for mutation in mutations:
                    tx_hash = session.submit(mutation)
                    result.submitted.append(tx_hash)
                    result.remaining -= 1
                    MUTATIONS_SUBMITTED_TOTAL.labels(network=network_id, kind=mutation.kind).inc()
        except SubmissionError as exc:
            result.state = BatchState.FAILED
            result.error = exc.detail
            SUBMISSION_FAILURES_TOTAL.labels(network=network_id).inc()
            LOGGER.error(
                'submission failed network=%s mutation=%r skipped=%s: %s',
                network_id,
                exc.mutation.description,
                result.remaining - 1,
                exc.detail
            )
            return
        except Exception as exc:
            # Session setup failures (rpc down, nonce read) fail this network only.
            result.state = BatchState.FAILED
            result.error = str(exc)
            SUBMISSION_FAILURES_TOTAL.labels(network=network_id).inc()
            LOGGER.exception('session failed network=%s', network_id)
            return

        result.state = BatchState.COMPLETED
        LOGGER.info('network complete network=%s submitted=%s', network_id, len(result.submitted))
