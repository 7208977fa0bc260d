from src.adapters.timer.manual_timer import ManualTimer
from src.application.services.outcome_state_machine import OutcomeStateMachine
from src.config.contracts import BASE_SEPOLIA
from src.domain.errors import DirectChannelError, SubmissionError
from src.domain.events.contract import ContractEvent
from src.domain.models.action import Receipt, SubmissionHandle
from src.domain.models.attempt import AttemptState
from src.domain.models.primitives import ZERO_ADDRESS
from src.domain.operations import MintUsdc

WALLET = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"


def make_machine():
    timer = ManualTimer()
    machine = OutcomeStateMachine(timer)
    seen = []
    machine.add_listener(seen.append)
    return machine, timer, seen


def prepared_mint(actor: str = WALLET, grace: float = 60.0):
    return MintUsdc(chain=BASE_SEPOLIA, grace_seconds=grace).prepare(actor, 10_000)


def transfer(
    to: str = WALLET, sender: str = ZERO_ADDRESS, contract: str = BASE_SEPOLIA.usdc, tx_hash=None
) -> ContractEvent:
    return ContractEvent.create(
        contract_address=contract,
        name="Transfer",
        args={"from": sender, "to": to, "value": 10_000 * 10**6},
        tx_hash=tx_hash,
        block_number=7,
    )


def states(seen):
    return [s.state for s in seen]


def test_feed_match_before_direct_error_confirms_without_error():
    machine, timer, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))

    assert machine.feed_event(transfer())
    machine.direct_errored(epoch, DirectChannelError("timeout"))

    assert machine.status.is_confirmed
    assert machine.status.error is None
    assert machine.grace_timer is None
    assert timer.pending() == 0


def test_direct_error_without_feed_fails_with_original_reason_after_grace():
    machine, timer, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("timeout: receipt not found"))

    assert machine.status.is_pending
    assert machine.status.error is None

    timer.advance(59.9)
    assert machine.status.is_pending

    timer.advance(0.1)
    assert machine.status.is_failed
    assert machine.status.reason == "timeout: receipt not found"


def test_reset_cancels_grace_timer_and_ignores_late_match():
    machine, timer, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))
    grace = machine.grace_timer

    machine.reset()
    assert grace.cancelled()
    assert machine.state == AttemptState.IDLE

    assert not machine.feed_event(transfer())
    timer.advance(120)
    assert machine.status.state == AttemptState.IDLE
    assert machine.status.error is None


def test_reset_is_idempotent():
    machine, _, seen = make_machine()
    machine.begin(prepared_mint())
    machine.reset()
    published = len(seen)
    machine.reset()
    machine.reset()
    assert len(seen) == published
    assert machine.status.state == AttemptState.IDLE


def test_new_attempt_is_not_affected_by_previous_grace_timer():
    machine, timer, _ = make_machine()
    first = machine.begin(prepared_mint())
    machine.submission_accepted(first, SubmissionHandle("0xh1"))
    machine.direct_errored(first, DirectChannelError("timeout"))

    timer.advance(30)
    second = machine.begin(prepared_mint())
    assert second == first + 1

    # Old attempt's inputs are stale now.
    machine.direct_confirmed(first)
    timer.advance(45)
    assert machine.status.is_pending
    assert machine.status.epoch == second
    assert machine.status.error is None


def test_handle_then_silent_direct_channel_confirms_via_feed():
    machine, _, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("H1"))
    assert machine.status.is_confirming

    machine.feed_event(transfer())

    assert states(seen) == [AttemptState.PENDING, AttemptState.PENDING, AttemptState.CONFIRMED]
    assert all(s.error is None for s in seen)
    assert machine.status.matched_event.args["to"] == WALLET
    assert str(machine.status.submission_handle) == "H1"


def test_immediate_rejection_fails_without_grace_timer():
    machine, timer, _ = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_rejected(epoch, SubmissionError("insufficient funds"))

    assert machine.status.is_failed
    assert machine.status.reason == "insufficient funds"
    assert machine.status.submission_handle is None
    assert machine.grace_timer is None
    assert timer.pending() == 0


def test_feed_match_inside_grace_period_cancels_timer():
    machine, timer, seen = make_machine()
    epoch = machine.begin(prepared_mint(grace=60))
    machine.submission_accepted(epoch, SubmissionHandle("H2"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))
    grace = machine.grace_timer

    timer.advance(30)
    machine.feed_event(transfer())

    assert grace.cancelled()
    assert timer.pending() == 0
    assert machine.status.is_confirmed
    assert AttemptState.FAILED not in states(seen)
    assert all(s.error is None for s in seen)


def test_feed_match_after_grace_period_is_ignored():
    machine, timer, _ = make_machine()
    epoch = machine.begin(prepared_mint(grace=60))
    machine.submission_accepted(epoch, SubmissionHandle("H2"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))

    timer.advance(60)
    assert machine.status.is_failed
    assert machine.status.reason == "timeout"

    timer.advance(30)
    assert not machine.feed_event(transfer())
    assert machine.status.is_failed
    assert machine.status.matched_event is None


def test_direct_confirmation_confirms_and_later_feed_only_records_match():
    machine, _, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_confirmed(epoch, Receipt(tx_hash="0xh1", success=True, block_number=12))

    assert machine.status.is_confirmed
    assert not machine.status.is_confirming

    assert machine.feed_event(transfer())
    assert machine.status.is_confirmed
    assert machine.status.matched_event is not None
    assert states(seen).count(AttemptState.CONFIRMED) == 2


def test_events_for_other_actor_or_contract_do_not_match():
    machine, timer, _ = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))

    assert not machine.feed_event(transfer(to=OTHER))
    assert not machine.feed_event(transfer(sender=OTHER))
    assert not machine.feed_event(transfer(contract=BASE_SEPOLIA.escrow))

    timer.advance(60)
    assert machine.status.is_failed


def test_address_match_is_case_insensitive():
    machine, _, _ = make_machine()
    mixed = "0xAbCdEf0000000000000000000000000000000001"
    epoch = machine.begin(prepared_mint(actor=mixed))
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))

    assert machine.feed_event(transfer(to=mixed.lower()))
    assert machine.status.is_confirmed


def test_error_is_hidden_while_pending():
    machine, _, seen = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("network error"))

    assert machine.status.is_pending
    assert not machine.status.is_confirming
    assert machine.status.error is None
    assert machine.attempt.direct_error.reason == "network error"


def test_zero_grace_fails_on_next_tick():
    machine, timer, _ = make_machine()
    epoch = machine.begin(prepared_mint(grace=0))
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("execution reverted"))

    assert machine.status.is_pending
    assert timer.advance(0) == 1
    assert machine.status.is_failed
    assert machine.status.error.failure_reason.value == "reverted"


def test_listener_errors_do_not_break_publishing():
    machine, _, seen = make_machine()

    def broken(status):
        raise RuntimeError("boom")

    machine.add_listener(broken)
    machine.begin(prepared_mint())
    machine.remove_listener(broken)
    assert seen[-1].is_pending


def test_late_event_from_previous_attempt_does_not_confirm_retry():
    machine, timer, seen = make_machine()
    first = machine.begin(prepared_mint())
    machine.submission_accepted(first, SubmissionHandle("0xH1"))
    machine.direct_errored(first, DirectChannelError("timeout"))
    timer.advance(60)
    assert machine.status.is_failed

    second = machine.begin(prepared_mint())
    machine.submission_accepted(second, SubmissionHandle("0xH2"))
    machine.direct_errored(second, DirectChannelError("timeout: receipt not found"))

    assert not machine.feed_event(transfer(tx_hash="0xh1"))
    assert machine.status.is_pending
    assert machine.attempt.matched_event is None

    timer.advance(60)
    assert machine.status.is_failed
    assert machine.status.reason == "timeout: receipt not found"


def test_retired_hash_is_ignored_before_retry_has_a_handle():
    machine, _, _ = make_machine()
    first = machine.begin(prepared_mint())
    machine.submission_accepted(first, SubmissionHandle("0xH1"))
    machine.reset()

    machine.begin(prepared_mint())
    assert not machine.feed_event(transfer(tx_hash="0xH1"))
    assert machine.status.is_pending


def test_event_with_own_hash_confirms_regardless_of_case():
    machine, _, _ = make_machine()
    epoch = machine.begin(prepared_mint())
    machine.submission_accepted(epoch, SubmissionHandle("0xH2"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))

    assert machine.feed_event(transfer(tx_hash="0xh2"))
    assert machine.status.is_confirmed
    assert machine.status.error is None


def test_grace_expiry_uses_timer_clock():
    machine, timer, _ = make_machine()
    timer.advance(100)
    epoch = machine.begin(prepared_mint(grace=15))
    machine.submission_accepted(epoch, SubmissionHandle("0xh1"))
    machine.direct_errored(epoch, DirectChannelError("timeout"))

    timer.advance(15)
    assert machine.status.is_failed
    assert timer.now() == 115.0
