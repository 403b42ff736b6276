import pytest

from conftest import SleepRecorder, failing, too_low
from sniper_engine.errors import AmountTooLowError, TradeError
from sniper_engine.execution.retry import RetryController, RetryPolicy


def scripted(*outcomes):
    calls = []
    script = list(outcomes)

    async def call(amount):
        calls.append(amount)
        outcome = script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return call, calls


@pytest.mark.anyio
async def test_success_first_try_does_not_sleep() -> None:
    sleep = SleepRecorder()
    call, calls = scripted("sig")
    outcome = await RetryController(sleep=sleep).run(call, 1000)
    assert outcome.value == "sig"
    assert outcome.attempts == 1
    assert outcome.amount == 1000
    assert calls == [1000]
    assert sleep.calls == []


@pytest.mark.anyio
async def test_amount_too_low_halves_until_success() -> None:
    logs = []
    sleep = SleepRecorder()
    call, calls = scripted(too_low(), too_low(), "sig-3")
    outcome = await RetryController(log=logs.append, sleep=sleep).run(call, 500000)

    assert calls == [500000, 250000, 125000]
    assert outcome.value == "sig-3"
    assert outcome.amount == 125000
    assert outcome.attempts == 3
    assert sleep.calls == [2.0, 4.0]
    assert "decreasing amount to 250000 and retrying" in logs
    assert "decreasing amount to 125000 and retrying" in logs
    assert logs[0].startswith("swap attempt 1 failed:")


@pytest.mark.anyio
async def test_devnet_backoff_is_2_4_8_seconds() -> None:
    sleep = SleepRecorder()
    call, calls = scripted(failing(), failing(), failing())
    with pytest.raises(TradeError):
        await RetryController(sleep=sleep).run(call, 10, is_mainnet=False)
    assert calls == [10, 10, 10]
    assert sleep.calls == [2.0, 4.0, 8.0]


@pytest.mark.anyio
async def test_mainnet_backoff_is_half_one_two_seconds() -> None:
    sleep = SleepRecorder()
    call, _ = scripted(failing(), failing(), failing())
    with pytest.raises(TradeError):
        await RetryController(sleep=sleep).run(call, 10, is_mainnet=True)
    assert sleep.calls == [0.5, 1.0, 2.0]


@pytest.mark.anyio
async def test_last_error_is_reraised_after_max_attempts() -> None:
    call, calls = scripted(failing("first"), failing("second"), failing("third"), "never")
    with pytest.raises(TradeError, match="third"):
        await RetryController(sleep=SleepRecorder()).run(call, 10)
    assert len(calls) == 3


@pytest.mark.anyio
async def test_amount_that_cannot_be_halved_fails_immediately() -> None:
    sleep = SleepRecorder()
    call, calls = scripted(too_low(), "never")
    with pytest.raises(AmountTooLowError):
        await RetryController(sleep=sleep).run(call, 1)
    assert calls == [1]
    assert sleep.calls == []


@pytest.mark.anyio
async def test_halving_stops_at_one_unit() -> None:
    sleep = SleepRecorder()
    call, calls = scripted(too_low(), too_low(), "never")
    with pytest.raises(AmountTooLowError):
        await RetryController(RetryPolicy(max_attempts=5), sleep=sleep).run(call, 2)
    assert calls == [2, 1]
    assert sleep.calls == [2.0]


@pytest.mark.anyio
async def test_backoff_delays_never_decrease() -> None:
    sleep = SleepRecorder()
    call, _ = scripted(*[failing()] * 5)
    with pytest.raises(TradeError):
        await RetryController(RetryPolicy(max_attempts=5), sleep=sleep).run(call, 10)
    assert sleep.calls == sorted(sleep.calls)
    assert len(sleep.calls) == 5


def test_policy_validation() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(backoff_factor=0.5)
