import unittest
from unittest.mock import patch

from apps.wirer import abi
from apps.wirer.broadcast import BatchState, BroadcastExecutor
from apps.wirer.diff_engine import DiffEngine
from apps.wirer.errors import SpecError, ValidatorNotFound
from apps.wirer.inspector import StateInspector
from apps.wirer.models import EnforcedOption
from apps.wirer.options import encode_enforced_option
from apps.wirer.pathway_spec import parse_wiring_spec
from apps.wirer.reconcile import Reconciler, Side, preflight
from apps.wirer.tests.fake_chain import (
    NETWORKS,
    FakeSessionFactory,
    chains_payload,
    deployments_table,
    dvns_table,
    fake_networks
)


def _pathway(source: str, dest: str, **extra) -> dict:
    pathway = {'from': source, 'to': dest, 'requiredDVNs': ['LayerZero Labs'], 'confirmations': [15]}
    pathway.update(extra)
    return pathway


def _document(*pathways: dict, bidirectional: bool = False) -> dict:
    return {
        'bidirectional': bidirectional,
        'chains': chains_payload('base', 'arbitrum', 'optimism'),
        'pathways': list(pathways)
    }


class Harness:
    def __init__(self, document: dict, side: Side = Side.BOTH) -> None:
        self.prepared = preflight(parse_wiring_spec(document), deployments_table(), dvns_table(), side=side)
        self.networks = fake_networks('base', 'arbitrum', 'optimism')
        self.sessions = FakeSessionFactory(self.networks)
        self.reconciler = Reconciler(
            StateInspector(lambda network_id: self.networks[network_id], self.prepared.deployments),
            DiffEngine(self.prepared.deployments),
            side=side
        )

    def run(self, check_only: bool = False):
        return self.reconciler.run(
            self.prepared.pathways,
            check_only=check_only,
            executor=BroadcastExecutor(self.sessions)
        )

    def plan(self):
        return self.reconciler.plan(self.prepared.pathways)


class ReconcilerTests(unittest.TestCase):
    def test_fresh_pathway_needs_seven_mutations(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum')))

        plan = harness.plan()

        self.assertEqual(plan.total, 1)
        self.assertEqual(plan.needs_configuration, 1)
        self.assertEqual(len(plan.batch), 7)
        self.assertEqual(plan.batch.networks(), ['base', 'arbitrum'])
        self.assertEqual(
            [m.kind for m in plan.batch.mutations_for('base')],
            ['send_library', 'peer', 'uln_config', 'executor_config']
        )
        self.assertEqual(
            [m.kind for m in plan.batch.mutations_for('arbitrum')],
            ['receive_library', 'peer', 'uln_config']
        )
        self.assertEqual(plan.batch.mutations_for('optimism'), ())

    def test_second_run_after_broadcast_is_a_noop(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum')))

        report = harness.run()
        self.assertTrue(report.ok)
        self.assertEqual(len(harness.networks['base'].submitted), 4)
        self.assertEqual(len(harness.networks['arbitrum'].submitted), 3)

        before = {name: network.snapshot() for name, network in harness.networks.items()}
        again = harness.run()

        self.assertEqual(again.plan.configured, 1)
        self.assertEqual(len(again.plan.batch), 0)
        self.assertIsNone(again.broadcast)
        self.assertEqual(before, {name: network.snapshot() for name, network in harness.networks.items()})

    def test_shared_source_network_gets_one_session(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum'), _pathway('base', 'optimism')))

        report = harness.run()

        self.assertEqual(report.plan.batch.networks(), ['base', 'arbitrum', 'optimism'])
        self.assertEqual(len(report.plan.batch.mutations_for('base')), 8)
        self.assertEqual(harness.sessions.opened, ['base', 'arbitrum', 'optimism'])
        self.assertEqual(
            [result.state for result in report.broadcast.results],
            [BatchState.COMPLETED] * 3
        )

    def test_check_only_never_opens_a_session(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum')))

        report = harness.run(check_only=True)

        self.assertTrue(report.check_only)
        self.assertIsNone(report.broadcast)
        self.assertEqual(len(report.plan.batch), 7)
        self.assertEqual(harness.sessions.opened, [])
        self.assertEqual(harness.networks['base'].submitted, [])
        self.assertEqual(report.as_dict()['needs_configuration'], 1)

    def test_source_only_and_dest_only(self) -> None:
        source = Harness(_document(_pathway('base', 'arbitrum')), side=Side.SOURCE)
        plan = source.plan()
        self.assertEqual(plan.batch.networks(), ['base'])
        self.assertEqual(len(plan.batch), 4)
        self.assertEqual(source.networks['arbitrum'].reads, [])

        dest = Harness(_document(_pathway('base', 'arbitrum')), side=Side.DEST)
        plan = dest.plan()
        self.assertEqual(plan.batch.networks(), ['arbitrum'])
        self.assertEqual(len(plan.batch), 3)
        self.assertEqual(dest.networks['base'].reads, [])

    def test_failed_read_forces_a_mutation(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum')))
        harness.run()
        harness.networks['base'].failing_reads.add('peers')

        with self.assertLogs('oapp_wirer.inspector', level='WARNING') as logs:
            plan = harness.plan()

        self.assertEqual([(m.target_network, m.kind) for m in plan.batch.mutations_for('base')], [('base', 'peer')])
        self.assertEqual(len(plan.batch), 1)
        self.assertTrue(any('call=peers' in line for line in logs.output))

    def test_failed_submission_does_not_stop_other_networks(self) -> None:
        harness = Harness(_document(_pathway('base', 'arbitrum')))
        harness.networks['base'].reject = lambda mutation: mutation.kind == 'uln_config'

        report = harness.run()

        self.assertFalse(report.ok)
        base, arbitrum = report.broadcast.results
        self.assertEqual(base.state, BatchState.FAILED)
        self.assertEqual([m.kind for m in harness.networks['base'].submitted], ['send_library', 'peer'])
        self.assertEqual(arbitrum.state, BatchState.COMPLETED)

    def test_bidirectional_options_are_applied_per_direction(self) -> None:
        harness = Harness(
            _document(
                _pathway(
                    'base',
                    'arbitrum',
                    confirmations=[15, 10],
                    enforcedOptions=[
                        [{'msgType': 1, 'lzReceiveGas': 250000}],
                        [{'msgType': 1, 'lzReceiveGas': 150000}]
                    ]
                ),
                bidirectional=True
            )
        )

        report = harness.run()

        self.assertEqual(report.plan.total, 2)
        self.assertEqual(len(report.plan.batch), 14)
        self.assertEqual(report.plan.needs_configuration, 2)
        for network_id in ('base', 'arbitrum'):
            peers = [m for m in report.plan.batch.mutations_for(network_id) if m.kind == 'peer']
            self.assertEqual(len(peers), 1)
        self.assertEqual(len(harness.networks['arbitrum'].submitted), 7)
        stored = harness.networks['arbitrum'].enforced_options[(NETWORKS['arbitrum']['app'], NETWORKS['base']['eid'], 1)]
        self.assertEqual(stored, encode_enforced_option(EnforcedOption(msg_type=1, lz_receive_gas=150000)))
        self.assertEqual(len(harness.plan().batch), 0)


    def test_options_sharing_a_msg_type_are_all_enforced(self) -> None:
        harness = Harness(
            _document(
                _pathway(
                    'base',
                    'arbitrum',
                    enforcedOptions=[
                        {'msgType': 2, 'lzReceiveGas': 200000},
                        {'msgType': 2, 'lzComposeGas': 100000}
                    ]
                )
            )
        )

        (mutation,) = [m for m in harness.plan().batch.mutations_for('base') if m.kind == 'enforced_options']

        (params,) = abi.SET_ENFORCED_OPTIONS.decode_call(mutation.encoded_call)
        self.assertEqual(
            params[0][2],
            encode_enforced_option(EnforcedOption(msg_type=2, lz_receive_gas=200000, lz_compose_gas=100000))
        )


class PreflightTests(unittest.TestCase):
    def test_unknown_required_dvn_aborts_before_any_session(self) -> None:
        sessions = FakeSessionFactory(fake_networks('base', 'arbitrum'))
        document = _document(_pathway('base', 'arbitrum', requiredDVNs=['LayerZero Labs', 'Ghost DVN']))

        with self.assertRaises(ValidatorNotFound):
            preflight(parse_wiring_spec(document), deployments_table(), dvns_table())
        self.assertEqual(sessions.opened, [])

    def test_only_referenced_networks_are_resolved(self) -> None:
        document = _document(_pathway('base', 'arbitrum'))
        document['chains']['polygon'] = {'eid': 30109, 'rpc': '', 'appAddress': '0x' + '99' * 20}

        prepared = preflight(parse_wiring_spec(document), deployments_table(), dvns_table())

        self.assertEqual(sorted(prepared.networks), ['arbitrum', 'base'])

    def test_missing_rpc_is_checked_for_touched_side_only(self) -> None:
        document = _document(_pathway('base', 'arbitrum'))
        document['chains']['arbitrum']['rpc'] = ''

        with patch.dict('os.environ', {}, clear=True):
            with self.assertRaises(SpecError):
                preflight(parse_wiring_spec(document), deployments_table(), dvns_table())

            prepared = preflight(parse_wiring_spec(document), deployments_table(), dvns_table(), side=Side.SOURCE)
        self.assertEqual(len(prepared.pathways), 1)


if __name__ == '__main__':
    unittest.main()
