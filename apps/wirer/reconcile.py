from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .batcher import MutationBatch
from .broadcast import BroadcastExecutor, BroadcastReport
from .deployment_registry import DeploymentRegistry
from .diff_engine import DiffEngine
from .dvn_registry import ValidatorRegistry
from .errors import SpecError
from .inspector import StateInspector
from .metrics import MUTATIONS_PLANNED_TOTAL
from .models import NetworkConfig, PathwayConfig, PendingMutation
from .pathway_spec import WiringSpec
from .pathways import resolve_pathways

LOGGER = logging.getLogger('oapp_wirer.reconcile')


class Side(enum.Enum):
    BOTH = 'both'
    SOURCE = 'source'
    DEST = 'dest'

    @property
    def includes_source(self) -> bool:
        return self in (Side.BOTH, Side.SOURCE)

    @property
    def includes_dest(self) -> bool:
        return self in (Side.BOTH, Side.DEST)


@dataclass(frozen=True)
class Preflight:
    networks: Mapping[str, NetworkConfig]
    deployments: DeploymentRegistry
    validators: ValidatorRegistry
    pathways: list[PathwayConfig]


def preflight(
    spec: WiringSpec,
    deployments_table: Mapping[str, Any],
    dvns_table: Mapping[str, Any],
    *,
    side: Side = Side.BOTH
) -> Preflight:
    """Build registries and resolve every pathway without touching any network.

    Raises on the first fatal problem, so a failing run submits nothing.
    """
    networks = spec.networks()
    used = {pathway.from_network for pathway in spec.pathways} | {pathway.to_network for pathway in spec.pathways}
    used_networks = {network_id: network for network_id, network in networks.items() if network_id in used}

    deployments = DeploymentRegistry.from_metadata(deployments_table, used_networks)
    validators = ValidatorRegistry.from_metadata(dvns_table, deployments.chain_keys(), spec.dvns)
    pathways = resolve_pathways(spec, used_networks, validators)

    touched: set[str] = set()
    for pathway in pathways:
        if side.includes_source:
            touched.add(pathway.source_network.network_id)
        if side.includes_dest:
            touched.add(pathway.dest_network.network_id)
    missing_rpc = sorted(network_id for network_id in touched if not used_networks[network_id].rpc)
    if missing_rpc:
        raise SpecError(f"no rpc url for networks: {', '.join(missing_rpc)}")

    return Preflight(networks=used_networks, deployments=deployments, validators=validators, pathways=pathways)


@dataclass
class PathwayStatus:
    pathway: PathwayConfig
    mutations: list[PendingMutation] = field(default_factory=list)

    @property
    def configured(self) -> bool:
        return not self.mutations


@dataclass
class ReconcilePlan:
    statuses: list[PathwayStatus]
    batch: MutationBatch

    @property
    def total(self) -> int:
        return len(self.statuses)

    @property
    def configured(self) -> int:
        return sum(1 for status in self.statuses if status.configured)

    @property
    def needs_configuration(self) -> int:
        return self.total - self.configured

    def summary(self) -> dict[str, Any]:
        return {
            'total': self.total,
            'configured': self.configured,
            'needs_configuration': self.needs_configuration,
            'mutations': len(self.batch),
            'pathways': [
                {
                    'pathway': status.pathway.label,
                    'configured': status.configured,
                    'mutations': [mutation.description for mutation in status.mutations]
                }
                for status in self.statuses
            ]
        }


@dataclass
class ReconcileReport:
    plan: ReconcilePlan
    check_only: bool
    broadcast: BroadcastReport | None = None

    @property
    def ok(self) -> bool:
        return self.broadcast is None or self.broadcast.ok

    def as_dict(self) -> dict[str, Any]:
        payload = self.plan.summary()
        payload['check_only'] = self.check_only
        if self.broadcast is not None:
            payload['broadcast'] = [result.as_dict() for result in self.broadcast.results]
        return payload


class Reconciler:
    def __init__(self, inspector: StateInspector, diff_engine: DiffEngine, *, side: Side = Side.BOTH) -> None:
        self.inspector = inspector
        self.diff_engine = diff_engine
        self.side = side

    def plan(self, pathways: list[PathwayConfig]) -> ReconcilePlan:
        batch = MutationBatch()
        statuses: list[PathwayStatus] = []

        for pathway in pathways:
            status = PathwayStatus(pathway=pathway)
            if self.side.includes_source:
                current = self.inspector.read_source_state(pathway)
                status.mutations.extend(self.diff_engine.diff_source(pathway, current))
            if self.side.includes_dest:
                current_dest = self.inspector.read_dest_state(pathway)
                status.mutations.extend(self.diff_engine.diff_dest(pathway, current_dest))

            for mutation in status.mutations:
                if not batch.add(mutation):
                    LOGGER.debug('already queued pathway=%s mutation=%r', pathway.label, mutation.description)
                    continue
                MUTATIONS_PLANNED_TOTAL.labels(network=mutation.target_network, kind=mutation.kind).inc()

            LOGGER.info(
                'pathway=%s side=%s status=%s mutations=%s',
                pathway.label,
                self.side.value,
                'configured' if status.configured else 'needs_configuration',
                len(status.mutations)
            )
            statuses.append(status)

        return ReconcilePlan(statuses=statuses, batch=batch)

    def run(
        self,
        pathways: list[PathwayConfig],
        *,
        check_only: bool,
        executor: BroadcastExecutor | None = None
    ) -> ReconcileReport:
        plan = self.plan(pathways)
        LOGGER.info(
            'pathways total=%s configured=%s needs_configuration=%s mutations=%s',
            plan.total,
            plan.configured,
            plan.needs_configuration,
            len(plan.batch)
        )

        if check_only:
            return ReconcileReport(plan=plan, check_only=True)
        if not plan.batch:
            LOGGER.info('nothing to submit')
            return ReconcileReport(plan=plan, check_only=False)
        if executor is None:
            raise ValueError('an executor is required unless check_only is set')

        return ReconcileReport(plan=plan, check_only=False, broadcast=executor.execute(plan.batch))
