import unittest
from unittest.mock import patch

from apps.wirer.config import get_settings, rpc_url_from_env


class SettingsTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_reads_flags_and_scope(self) -> None:
        with patch.dict(
            'os.environ',
            {
                'CHECK_ONLY': 'yes',
                'VERBOSE': '0',
                'WIRE_SCOPE': 'Dest',
                'RECEIVE_LIBRARY_GRACE_PERIOD': '600'
            },
            clear=False
        ):
            get_settings.cache_clear()
            settings = get_settings()

        self.assertTrue(settings.check_only)
        self.assertFalse(settings.verbose)
        self.assertEqual(settings.scope, 'dest')
        self.assertEqual(settings.receive_library_grace_period, 600)

    def test_unknown_scope_falls_back_to_both(self) -> None:
        with patch.dict('os.environ', {'WIRE_SCOPE': 'sideways'}, clear=False):
            get_settings.cache_clear()
            self.assertEqual(get_settings().scope, 'both')

    def test_rpc_url_prefers_network_specific_variable(self) -> None:
        with patch.dict(
            'os.environ',
            {'RPC_URL': 'http://shared', 'RPC_URL_ARBITRUM_SEPOLIA': 'http://arb-sepolia'},
            clear=True
        ):
            self.assertEqual(rpc_url_from_env('arbitrum-sepolia'), 'http://arb-sepolia')
            self.assertEqual(rpc_url_from_env('base'), 'http://shared')


if __name__ == '__main__':
    unittest.main()
