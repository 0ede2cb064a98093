"""
Tests for the storage substrate.

Validates:
- MemoryStorage and SqlStorage get/set/remove
- Transactions commit on success and roll back on error
- Typed Item slots round-trip pydantic models and plain ints
- Corrupt values surface as StorageError
"""

from __future__ import annotations

import pytest

from unity_vault.storage.service import Item, MemoryStorage, SqlStorage, StorageError
from unity_vault.vault.errors import NotInstantiated
from unity_vault.vault.schema import VaultConfig
from unity_vault.vault.state import CONFIG, WITHDRAWAL_READY, load_config, load_state


class TestMemoryStorage:

    def setup_method(self):
        self.storage = MemoryStorage()

    def test_get_set_remove(self):
        assert self.storage.get("a") is None
        self.storage.set("a", b"1")
        assert self.storage.get("a") == b"1"
        self.storage.remove("a")
        assert self.storage.get("a") is None

    def test_remove_missing_is_noop(self):
        self.storage.remove("missing")
        assert self.storage.keys() == []

    def test_transaction_commits(self):
        with self.storage.transaction() as tx:
            tx.set("a", b"1")
        assert self.storage.get("a") == b"1"

    def test_transaction_rolls_back(self):
        self.storage.set("keep", b"old")
        with pytest.raises(RuntimeError):
            with self.storage.transaction() as tx:
                tx.set("keep", b"new")
                tx.set("extra", b"x")
                raise RuntimeError("boom")
        assert self.storage.get("keep") == b"old"
        assert self.storage.keys() == ["keep"]


class TestSqlStorage:

    def _open(self, tmp_path) -> SqlStorage:
        storage = SqlStorage(f"sqlite:///{tmp_path / 'state.db'}")
        storage.initialize()
        return storage

    def test_get_set_remove(self, tmp_path):
        storage = self._open(tmp_path)
        storage.set("a", b"1")
        storage.set("a", b"2")
        assert storage.get("a") == b"2"
        storage.remove("a")
        assert storage.get("a") is None

    def test_keys_sorted(self, tmp_path):
        storage = self._open(tmp_path)
        storage.set("b", b"")
        storage.set("a", b"")
        assert storage.keys() == ["a", "b"]

    def test_transaction_rolls_back(self, tmp_path):
        storage = self._open(tmp_path)
        storage.set("keep", b"old")
        with pytest.raises(RuntimeError):
            with storage.transaction() as tx:
                tx.set("keep", b"new")
                tx.set("extra", b"x")
                assert tx.get("extra") == b"x", "Writes visible inside the transaction"
                raise RuntimeError("boom")
        assert storage.get("keep") == b"old"
        assert storage.get("extra") is None

    def test_persists_across_instances(self, tmp_path):
        self._open(tmp_path).set("a", b"1")
        assert self._open(tmp_path).get("a") == b"1"


class TestItem:

    def setup_method(self):
        self.storage = MemoryStorage()

    def test_model_round_trip(self):
        config = VaultConfig(withdraw_address="gordon-gekko-address", withdraw_delay_in_days=3)
        CONFIG.save(self.storage, config)
        assert CONFIG.load(self.storage) == config
        assert CONFIG.exists(self.storage)

    def test_int_slot(self):
        WITHDRAWAL_READY.save(self.storage, 86400)
        assert self.storage.get(WITHDRAWAL_READY.key) == b"86400"
        assert WITHDRAWAL_READY.load(self.storage) == 86400

    def test_may_load_missing(self):
        assert Item("nothing", int).may_load(self.storage) is None

    def test_load_missing_raises(self):
        with pytest.raises(StorageError):
            Item("nothing", int).load(self.storage)

    def test_corrupt_value(self):
        self.storage.set(CONFIG.key, b"not json")
        with pytest.raises(StorageError):
            CONFIG.may_load(self.storage)

    def test_remove(self):
        WITHDRAWAL_READY.save(self.storage, 1)
        WITHDRAWAL_READY.remove(self.storage)
        assert not WITHDRAWAL_READY.exists(self.storage)


class TestStateHelpers:

    def test_load_config_before_instantiate(self):
        with pytest.raises(NotInstantiated):
            load_config(MemoryStorage())

    def test_load_state(self):
        storage = MemoryStorage()
        CONFIG.save(storage, VaultConfig(withdraw_address="gordon-gekko-address", withdraw_delay_in_days=1))
        state = load_state(storage)
        assert state.withdrawal_ready_at is None
        assert state.withdrawal_requested is False
