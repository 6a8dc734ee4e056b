"""Tests for shared JSON types and address helpers."""

import pytest
from pydantic import BaseModel, ValidationError

from rebalancer.models.types import (
    UINT256_MAX,
    Int24,
    Uint256,
    bytes_to_hex,
    hex_to_bytes,
    is_valid_address,
    normalize_address,
    parse_uint256,
)
from tests.helpers import USDC


class Amounts(BaseModel):
    amount: Uint256
    tick: Int24 = 0


class TestUint256:
    """Tests for the Uint256 type."""

    def test_accepts_decimal_string(self):
        """Large values travel as decimal strings."""
        assert Amounts.model_validate({"amount": str(2**200)}).amount == 2**200

    def test_accepts_int(self):
        assert Amounts(amount=5).amount == 5

    def test_serializes_as_string(self):
        """JSON output keeps full precision."""
        assert Amounts(amount=2**100).model_dump(mode="json")["amount"] == str(2**100)

    def test_bounds(self):
        """Values outside [0, 2**256) are rejected."""
        assert parse_uint256(UINT256_MAX) == UINT256_MAX
        with pytest.raises(ValueError, match="overflow"):
            parse_uint256(UINT256_MAX + 1)
        with pytest.raises(ValueError, match="negative"):
            parse_uint256(-1)

    @pytest.mark.parametrize("value", [True, 1.5, "1e18", "abc", None])
    def test_rejects_non_integers(self, value):
        """Bools, floats and non-decimal strings are rejected."""
        with pytest.raises(ValidationError):
            Amounts.model_validate({"amount": value})


class TestInt24:
    """Tests for the Int24 tick type."""

    def test_negative_string(self):
        assert Amounts.model_validate({"amount": 0, "tick": "-269393"}).tick == -269393

    def test_out_of_range(self):
        """Ticks must fit in int24."""
        with pytest.raises(ValidationError):
            Amounts.model_validate({"amount": 0, "tick": 2**23})


class TestAddressHelpers:
    """Tests for address and hex helpers."""

    def test_normalize(self):
        """Addresses are lowercased and 0x-prefixed."""
        assert normalize_address(USDC.upper().replace("0X", "0x")) == USDC
        assert normalize_address(USDC[2:]) == USDC

    def test_normalize_validates_on_request(self):
        """validate=True rejects malformed addresses."""
        assert normalize_address("0x1234") == "0x1234"
        with pytest.raises(ValueError, match="Invalid address"):
            normalize_address("0x1234", validate=True)

    @pytest.mark.parametrize(
        "address,valid",
        [
            (USDC, True),
            ("0x" + "0" * 40, True),
            ("0x1234", False),
            ("0x" + "g" * 40, False),
            (USDC[2:], False),
        ],
    )
    def test_is_valid_address(self, address, valid):
        assert is_valid_address(address) is valid

    def test_hex_helpers(self):
        """Hex conversion accepts the empty payload."""
        assert hex_to_bytes("0x") == b""
        assert hex_to_bytes("dead") == b"\xde\xad"
        assert bytes_to_hex(b"\xde\xad") == "0xdead"
