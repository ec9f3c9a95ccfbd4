"""
Payment gate decision and status check.

- Valid payment or payment not required -> shown
- Free trials allowed and below limit -> shown, counted as trial
- Otherwise payment required
- Any failure while reading policy -> cannot generate, error.payment_check_failed
"""
import pytest
from unittest.mock import AsyncMock, patch

from models import GateDecision, PaymentSettings
from services.payment_gate import decide_gate, check_payment_status


def test_valid_payment_always_shows():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=False, trial_limit=0)
    assert decide_gate(policy, 5, True) == GateDecision.ALLOW_AND_SHOW


def test_payment_not_required_shows():
    policy = PaymentSettings(payment_required=False)
    assert decide_gate(policy, 100, False) == GateDecision.ALLOW_AND_SHOW


def test_trial_below_limit_is_counted():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=True, trial_limit=3)
    assert decide_gate(policy, 0, False) == GateDecision.ALLOW_AND_INCREMENT_TRIAL
    assert decide_gate(policy, 2, False) == GateDecision.ALLOW_AND_INCREMENT_TRIAL


def test_trial_at_limit_requires_payment():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=True, trial_limit=3)
    assert decide_gate(policy, 3, False) == GateDecision.REQUIRE_PAYMENT


def test_trials_disabled_requires_payment():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=False, trial_limit=10)
    assert decide_gate(policy, 0, False) == GateDecision.REQUIRE_PAYMENT


def test_zero_trial_limit_requires_payment():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=True, trial_limit=0)
    assert decide_gate(policy, 0, False) == GateDecision.REQUIRE_PAYMENT


@pytest.mark.asyncio
async def test_status_reports_trial_counts():
    policy = PaymentSettings(payment_required=True, free_trials_allowed=True, trial_limit=2)
    with patch("services.payment_gate.settings_service.get_payment_settings", new_callable=AsyncMock, return_value=policy):
        with patch("services.payment_gate.trial_service.get_trial_count", new_callable=AsyncMock, return_value=1):
            with patch("services.payment_gate.pending_result_service.is_payment_token_valid", new_callable=AsyncMock, return_value=False):
                status = await check_payment_status("sess-1")

    assert status.can_generate is True
    assert status.requires_payment is False
    assert status.show_results is True
    assert status.decision == GateDecision.ALLOW_AND_INCREMENT_TRIAL
    assert status.trial_count == 1
    assert status.trial_limit == 2


@pytest.mark.asyncio
async def test_status_requires_payment_reason():
    policy = PaymentSettings()
    with patch("services.payment_gate.settings_service.get_payment_settings", new_callable=AsyncMock, return_value=policy):
        with patch("services.payment_gate.trial_service.get_trial_count", new_callable=AsyncMock, return_value=0):
            with patch("services.payment_gate.pending_result_service.is_payment_token_valid", new_callable=AsyncMock, return_value=False):
                status = await check_payment_status("sess-1")

    assert status.requires_payment is True
    assert status.show_results is False
    assert status.reason == "payment.required"
    assert status.decision == GateDecision.REQUIRE_PAYMENT


@pytest.mark.asyncio
async def test_status_check_failure_blocks_generation():
    with patch(
        "services.payment_gate.settings_service.get_payment_settings",
        new_callable=AsyncMock,
        side_effect=RuntimeError("db down"),
    ):
        with patch("services.payment_gate.trial_service.get_trial_count", new_callable=AsyncMock, return_value=0):
            with patch("services.payment_gate.pending_result_service.is_payment_token_valid", new_callable=AsyncMock, return_value=False):
                status = await check_payment_status("sess-1")

    assert status.can_generate is False
    assert status.reason == "error.payment_check_failed"
