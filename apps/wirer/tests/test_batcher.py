import unittest

from apps.wirer.batcher import MutationBatch
from apps.wirer.models import PendingMutation


def _mutation(network_id: str, kind: str) -> PendingMutation:
    return PendingMutation(
        target_network=network_id,
        target_contract='0x' + '11' * 20,
        encoded_call=kind.encode(),
        description=f'{network_id} {kind}',
        kind=kind
    )


class MutationBatchTests(unittest.TestCase):
    def test_groups_by_network_in_first_seen_order(self) -> None:
        batch = MutationBatch()
        batch.extend(
            [
                _mutation('base', 'send_library'),
                _mutation('arbitrum', 'receive_library'),
                _mutation('base', 'peer'),
                _mutation('optimism', 'peer'),
                _mutation('arbitrum', 'peer')
            ]
        )

        self.assertEqual(batch.networks(), ['base', 'arbitrum', 'optimism'])
        self.assertEqual([m.kind for m in batch.mutations_for('base')], ['send_library', 'peer'])
        self.assertEqual([m.kind for m in batch.mutations_for('arbitrum')], ['receive_library', 'peer'])
        self.assertEqual(len(batch), 5)

    def test_identical_call_on_same_network_is_queued_once(self) -> None:
        batch = MutationBatch()

        self.assertTrue(batch.add(_mutation('arbitrum', 'peer')))
        self.assertFalse(batch.add(_mutation('arbitrum', 'peer')))
        self.assertTrue(batch.add(_mutation('base', 'peer')))

        self.assertEqual(len(batch.mutations_for('arbitrum')), 1)
        self.assertEqual(len(batch), 2)

    def test_empty_batch(self) -> None:
        batch = MutationBatch()

        self.assertFalse(batch)
        self.assertEqual(len(batch), 0)
        self.assertEqual(batch.mutations_for('base'), ())
        self.assertEqual(batch.as_dict(), {})

    def test_as_dict_renders_hex_calldata(self) -> None:
        batch = MutationBatch()
        batch.add(_mutation('base', 'peer'))

        rendered = batch.as_dict()
        self.assertEqual(list(rendered), ['base'])
        self.assertEqual(rendered['base'][0]['data'], '0x' + b'peer'.hex())
        self.assertEqual(rendered['base'][0]['kind'], 'peer')


if __name__ == '__main__':
    unittest.main()
