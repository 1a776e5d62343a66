"""Shared test fixtures for CallBatch."""

from __future__ import annotations

import pytest

from callbatch.core.channels.base import SubmissionError

from fakes import address


@pytest.fixture
def targets() -> list[str]:
    """Five distinct target addresses."""
    return [address(i) for i in range(1, 6)]


@pytest.fixture
def submission_error() -> SubmissionError:
    return SubmissionError("execution reverted: not allowed", code=-32000)
