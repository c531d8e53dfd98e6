from __future__ import annotations

import pytest

from src.jobstream.polling.polling_classifier import OutcomeKind, classify
from src.jobstream.polling.polling_codes import (
    CONTENT_FILTER_CODES,
    FAIL_CODE_MESSAGES,
    QUOTA_EXHAUSTED_CODES,
    StatusCode,
    describe_fail_code,
    status_name,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("status", [StatusCode.SUCCESS, StatusCode.COMPLETED])
def test_terminal_statuses_succeed_regardless_of_fail_code(status: StatusCode) -> None:
    assert classify(status, "2038").kind is OutcomeKind.SUCCESS
    assert classify(status).kind is OutcomeKind.SUCCESS


@pytest.mark.parametrize(
    "status",
    [StatusCode.PROCESSING, StatusCode.POST_PROCESSING, StatusCode.FINALIZING, 99],
)
def test_non_terminal_statuses_continue(status: int) -> None:
    result = classify(status, "2038")

    assert result.kind is OutcomeKind.CONTINUE
    assert not result.is_failure


@pytest.mark.parametrize("fail_code", sorted(FAIL_CODE_MESSAGES))
def test_every_known_fail_code_is_a_failure(fail_code: str) -> None:
    result = classify(StatusCode.FAILED, fail_code)

    assert result.kind is not OutcomeKind.CONTINUE
    assert result.is_failure
    assert result.message


@pytest.mark.parametrize("fail_code", sorted(CONTENT_FILTER_CODES))
def test_policy_codes_are_content_filtered(fail_code: str) -> None:
    assert classify(StatusCode.FAILED, fail_code).kind is OutcomeKind.CONTENT_FILTERED


@pytest.mark.parametrize("fail_code", sorted(QUOTA_EXHAUSTED_CODES))
def test_balance_codes_are_quota_exhausted(fail_code: str) -> None:
    assert classify(StatusCode.FAILED, fail_code).kind is OutcomeKind.QUOTA_EXHAUSTED


def test_unmapped_fail_code_is_fatal_with_fallback_message() -> None:
    result = classify(StatusCode.FAILED, "987654")

    assert result.kind is OutcomeKind.FATAL
    assert result.message == "generation failed, code: 987654"


def test_vendor_message_used_for_unmapped_code() -> None:
    result = classify(StatusCode.FAILED, "987654", "model overloaded")

    assert result.message == "model overloaded"


def test_integer_fail_codes_are_normalised() -> None:
    assert classify(StatusCode.FAILED, 2038).kind is OutcomeKind.CONTENT_FILTERED  # type: ignore[arg-type]


def test_describe_fail_code_without_details() -> None:
    assert describe_fail_code(None) == "generation failed"
    assert describe_fail_code("1006") == "Insufficient credits"


def test_status_name_reports_unknown_codes() -> None:
    assert status_name(45) == "FINALIZING"
    assert status_name(77) == "UNKNOWN(77)"
