"""
Tests for the vault status command.

Validates:
- Uninstantiated store reports failure
- Locked and ready withdrawal states are reported
- The status subcommand exits with the matching code
- The token subcommand prints the API sender token
"""

from __future__ import annotations

import pytest

from unity_vault.api.auth import sender_token
from unity_vault.cli import main, run_status, run_token
from unity_vault.host.chain import VaultHost
from unity_vault.storage.service import SqlStorage
from unity_vault.vault.schema import InstantiateMsg, StartWithdraw

BENEFICIARY = "gordon-gekko-address"


class TestStatus:

    def _database_url(self, tmp_path) -> str:
        return f"sqlite:///{tmp_path / 'vault.db'}"

    def _instantiated(self, tmp_path, request_withdrawal: bool = False) -> str:
        url = self._database_url(tmp_path)
        storage = SqlStorage(url)
        storage.initialize()
        host = VaultHost(storage=storage, block_time=1_000)
        host.instantiate(
            "bud-fox-address",
            InstantiateMsg(withdraw_address=BENEFICIARY, withdraw_delay_in_days=1),
        )
        if request_withdrawal:
            host.execute(BENEFICIARY, StartWithdraw())
        return url

    def test_not_instantiated(self, tmp_path):
        assert run_status(self._database_url(tmp_path), at=0) is False

    def test_instantiated(self, tmp_path):
        url = self._instantiated(tmp_path)
        assert run_status(url, at=2_000, verbose=True) is True

    def test_locked_and_ready(self, tmp_path, capsys):
        url = self._instantiated(tmp_path, request_withdrawal=True)

        assert run_status(url, at=1_000 + 86400)
        assert "LOCKED" in capsys.readouterr().out

        assert run_status(url, at=1_000 + 86401)
        assert "READY" in capsys.readouterr().out

    def test_leaves_vault_state_untouched(self, tmp_path):
        url = self._instantiated(tmp_path, request_withdrawal=True)
        storage = SqlStorage(url)
        before = {key: storage.get(key) for key in storage.keys()}

        run_status(url, at=1_000 + 86401, verbose=True)

        assert {key: storage.get(key) for key in storage.keys()} == before

    def test_main_exit_codes(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["status", "--database-url", self._database_url(tmp_path)])
        assert exc_info.value.code == 1

        url = self._instantiated(tmp_path)
        with pytest.raises(SystemExit) as exc_info:
            main(["status", "--database-url", url, "--at", "5000"])
        assert exc_info.value.code == 0


class TestToken:

    def test_run_token(self, capsys):
        token = run_token(BENEFICIARY)
        assert token == sender_token(BENEFICIARY)
        assert token in capsys.readouterr().out

    def test_main_token(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["token", BENEFICIARY])
        assert exc_info.value.code == 0
        assert sender_token(BENEFICIARY) in capsys.readouterr().out
