"""Tests for function signatures and selectors."""

from __future__ import annotations

import pytest

from callbatch.core.abi import (
    function_selector,
    is_valid_signature,
    normalize_signature,
    takes_arguments,
)


class TestSelector:
    @pytest.mark.parametrize(
        ("signature", "selector"),
        [
            ("transfer(address,uint256)", "0xa9059cbb"),
            ("balanceOf(address)", "0x70a08231"),
            ("approve(address,uint256)", "0x095ea7b3"),
            ("totalSupply()", "0x18160ddd"),
        ],
    )
    def test_known_selectors(self, signature: str, selector: str) -> None:
        assert function_selector(signature) == selector

    def test_whitespace_ignored(self) -> None:
        assert function_selector("transfer( address, uint256 )") == "0xa9059cbb"

    def test_invalid_signature(self) -> None:
        with pytest.raises(ValueError, match="Invalid function signature"):
            function_selector("transfer")


class TestSignature:
    def test_normalize(self) -> None:
        assert normalize_signature(" f( uint256 ,bool ) ") == "f(uint256,bool)"

    @pytest.mark.parametrize("signature", ["interact()", "_f(uint256)", "$x(bytes32[])"])
    def test_valid(self, signature: str) -> None:
        assert is_valid_signature(signature)

    @pytest.mark.parametrize("signature", ["interact", "9f()", "f(g())", "f()x"])
    def test_invalid(self, signature: str) -> None:
        assert not is_valid_signature(signature)

    def test_takes_arguments(self) -> None:
        assert not takes_arguments("interact()")
        assert takes_arguments("setValue(uint256)")
        with pytest.raises(ValueError):
            takes_arguments("interact")
