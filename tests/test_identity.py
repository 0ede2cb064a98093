"""
Tests for host identity validation.

Validates:
- Well-formed identities pass unchanged
- Empty, short, long, non-normalized and malformed identities are rejected
- Optional prefix rule
"""

from __future__ import annotations

import pytest

from unity_vault.vault.errors import ErrorKind, InvalidIdentity
from unity_vault.vault.identity import AddressValidator


class TestAddressValidator:

    def setup_method(self):
        self.api = AddressValidator(min_length=3, max_length=90, prefix="")

    @pytest.mark.parametrize(
        "address",
        ["gordon-gekko-address", "carl-fox-address", "juno1qwerty", "a.b_c-d"],
    )
    def test_valid(self, address):
        assert self.api.addr_validate(address) == address

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "ab",
            "x" * 91,
            "Gordon-Gekko",
            "gordon gekko",
            "-leading-dash",
            "emoji-☃",
        ],
    )
    def test_invalid(self, address):
        with pytest.raises(InvalidIdentity) as exc_info:
            self.api.addr_validate(address)
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_non_string_rejected(self):
        with pytest.raises(InvalidIdentity):
            self.api.addr_validate(None)

    def test_prefix_required(self):
        api = AddressValidator(prefix="juno")
        assert api.addr_validate("juno1abc") == "juno1abc"
        with pytest.raises(InvalidIdentity):
            api.addr_validate("osmo1abc")
