"""
Contract function signatures and selectors.

A selector is the first 4 bytes of the Keccak-256 hash of the canonical
signature, e.g. ``transfer(address,uint256)`` -> ``0xa9059cbb``.
"""

from __future__ import annotations

import re

from Crypto.Hash import keccak


SIGNATURE_PATTERN = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*\(([^()]*)\)$")


def normalize_signature(signature: str) -> str:
    """Drop all whitespace, so ``interact( )`` and ``interact()`` match."""
    return "".join(signature.split())


def is_valid_signature(signature: str) -> bool:
    return bool(SIGNATURE_PATTERN.match(normalize_signature(signature)))


def takes_arguments(signature: str) -> bool:
    """Whether the signature declares any parameters."""
    match = SIGNATURE_PATTERN.match(normalize_signature(signature))
    if not match:
        raise ValueError(f"Invalid function signature: {signature!r}")
    return bool(match.group(1))


def function_selector(signature: str) -> str:
    """0x-prefixed 4-byte selector for a function signature.

    Raises:
        ValueError: If the signature is malformed
    """
    canonical = normalize_signature(signature)
    if not SIGNATURE_PATTERN.match(canonical):
        raise ValueError(f"Invalid function signature: {signature!r}")

    digest = keccak.new(digest_bits=256, data=canonical.encode("ascii")).hexdigest()
    return "0x" + digest[:8]
