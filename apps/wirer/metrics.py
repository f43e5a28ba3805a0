from __future__ import annotations

import logging

from prometheus_client import CollectorRegistry, Counter, push_to_gateway

LOGGER = logging.getLogger('oapp_wirer.metrics')

REGISTRY = CollectorRegistry()

MUTATIONS_PLANNED_TOTAL = Counter(
    'oapp_wirer_mutations_planned_total',
    'Mutations produced by the diff engine',
    ['network', 'kind'],
    registry=REGISTRY
)
MUTATIONS_SUBMITTED_TOTAL = Counter(
    'oapp_wirer_mutations_submitted_total',
    'Mutations confirmed on-chain',
    ['network', 'kind'],
    registry=REGISTRY
)
SUBMISSION_FAILURES_TOTAL = Counter(
    'oapp_wirer_submission_failures_total',
    'Network batches aborted by a failed submission',
    ['network'],
    registry=REGISTRY
)


def push_metrics(gateway: str, job: str) -> None:
    if not gateway:
        return
    try:
        push_to_gateway(gateway, job=job, registry=REGISTRY)
    except OSError as exc:
        LOGGER.warning('metrics push failed gateway=%s: %s', gateway, exc)
