# tests/test_reasons.py
"""
Termination reasons: stable codes, verdicts and messages.
"""

import pytest

from msqs.errors import (
    FunctionDomainError,
    MooringError,
    PostSolveToleranceFailure,
    StepRejected,
)
from msqs.reasons import GENERIC_FAILURE, ConvergedReason, exception_for, report_reason


@pytest.mark.parametrize("reason, code, converged", [
    (ConvergedReason.CONVERGED_FNORM_ABS, 2, True),
    (ConvergedReason.CONVERGED_FNORM_RELATIVE, 3, True),
    (ConvergedReason.CONVERGED_SNORM_RELATIVE, 4, True),
    (ConvergedReason.CONVERGED_ITERATING, 0, False),
    (ConvergedReason.DIVERGED_FUNCTION_DOMAIN, -1, False),
    (ConvergedReason.DIVERGED_MAX_IT, -5, False),
    (ConvergedReason.DIVERGED_TR_DELTA, -11, False),
    (ConvergedReason.POST_SOLVE_TOLERANCE, -100, False),
])
def test_report_codes_and_verdicts(reason, code, converged):
    report = report_reason(reason)
    assert report.code == code
    assert report.converged is converged
    assert f"code {code}" in report.message


def test_every_reason_has_its_own_message():
    messages = [report_reason(r).message for r in ConvergedReason]
    assert len(set(messages)) == len(messages)
    assert GENERIC_FAILURE not in messages


def test_integer_codes_are_accepted():
    assert report_reason(2) == report_reason(ConvergedReason.CONVERGED_FNORM_ABS)
    assert report_reason(-3).message.startswith("Diverged (code -3)")


@pytest.mark.parametrize("unknown", [42, -57, "converged", None])
def test_unknown_reason_is_generic_failure(unknown):
    report = report_reason(unknown)
    assert not report.converged
    assert report.message == GENERIC_FAILURE


def test_unknown_integer_keeps_its_code():
    assert report_reason(42).code == 42


@pytest.mark.parametrize("reason, cls", [
    (ConvergedReason.DIVERGED_FUNCTION_DOMAIN, FunctionDomainError),
    (ConvergedReason.DIVERGED_LINE_SEARCH, StepRejected),
    (ConvergedReason.DIVERGED_TR_DELTA, StepRejected),
    (ConvergedReason.POST_SOLVE_TOLERANCE, PostSolveToleranceFailure),
    (ConvergedReason.DIVERGED_INNER, MooringError),
    (99, MooringError),
])
def test_exception_for(reason, cls):
    exc, message = exception_for(reason)
    assert exc is cls
    assert message == report_reason(reason).message
