from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from eth_account import Account

from .broadcast import BroadcastExecutor
from .config import Settings, get_settings
from .diff_engine import DiffEngine
from .errors import SessionError, WiringError
from .inspector import StateInspector
from .metadata import load_metadata_table
from .metrics import push_metrics
from .network import NetworkPool
from .pathway_spec import load_wiring_spec
from .reconcile import Reconciler, ReconcileReport, Side, preflight

LOGGER = logging.getLogger('oapp_wirer')


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Reconcile LayerZero V2 OApp pathway wiring across networks')
    parser.add_argument('spec', help='Pathway document (json)')
    parser.add_argument('--check-only', action='store_true', help='Report pathway status without submitting')
    parser.add_argument('--verbose', action='store_true', help='Log every compared field')
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument('--source-only', action='store_true', help='Only inspect and wire the sending side')
    scope.add_argument('--dest-only', action='store_true', help='Only inspect and wire the receiving side')
    parser.add_argument('--plan-out', help='Write the pending mutation batch to this json file')
    parser.add_argument('--deployments', help='LayerZero deployments metadata json')
    parser.add_argument('--dvns', help='LayerZero dvn metadata json')
    return parser.parse_args(argv)


def _apply_args(settings: Settings, args: argparse.Namespace) -> Settings:
    scope = settings.scope
    if args.source_only:
        scope = 'source'
    elif args.dest_only:
        scope = 'dest'
    return replace(
        settings,
        check_only=settings.check_only or args.check_only,
        verbose=settings.verbose or args.verbose,
        scope=scope,
        deployments_path=args.deployments or settings.deployments_path,
        dvns_path=args.dvns or settings.dvns_path
    )


def run(settings: Settings, spec_path: str, plan_out: str | None = None) -> ReconcileReport:
    side = Side(settings.scope)
    spec = load_wiring_spec(spec_path)
    deployments_table = load_metadata_table(settings.deployments_path, label='deployments')
    dvns_table = load_metadata_table(settings.dvns_path, label='dvn')
    checked = preflight(spec, deployments_table, dvns_table, side=side)

    account = None
    if not settings.check_only:
        if not settings.private_key:
            raise SessionError('PRIVATE_KEY is required unless CHECK_ONLY is set')
        try:
            account = Account.from_key(settings.private_key)
        except (ValueError, TypeError) as exc:
            raise SessionError(f'PRIVATE_KEY is not a valid signing key: {exc}') from exc

    pool = NetworkPool(
        checked.networks,
        account=account,
        rpc_timeout=settings.rpc_timeout_seconds,
        receipt_timeout=settings.tx_receipt_timeout_seconds
    )
    reconciler = Reconciler(
        StateInspector(pool.client, checked.deployments),
        DiffEngine(
            checked.deployments,
            verbose=settings.verbose,
            receive_grace_period=settings.receive_library_grace_period
        ),
        side=side
    )

    if settings.check_only:
        report = reconciler.run(checked.pathways, check_only=True)
    else:
        report = reconciler.run(checked.pathways, check_only=False, executor=BroadcastExecutor(pool))

    if plan_out:
        path = Path(plan_out)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.plan.batch.as_dict(), indent=2) + '\n', encoding='utf-8')
        LOGGER.info('plan written path=%s mutations=%s', path, len(report.plan.batch))

    return report


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = _apply_args(get_settings(), args)
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    try:
        report = run(settings, args.spec, plan_out=args.plan_out)
    except WiringError as exc:
        LOGGER.error('run aborted: %s', exc.detail)
        return exc.exit_code
    finally:
        push_metrics(settings.prometheus_pushgateway, job=settings.app_name)

    print(json.dumps(report.as_dict(), indent=2))
    return 0 if report.ok else 1


if __name__ == '__main__':
    sys.exit(main())
