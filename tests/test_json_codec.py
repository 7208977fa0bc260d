import json
from decimal import Decimal

import pytest

from src.adapters.serialization.json_codec import MAX_SAFE_INTEGER, encode_json, parse_int, to_wire
from src.domain.errors import DirectChannelError
from src.domain.models.action import SubmissionHandle
from src.domain.models.attempt import AttemptState
from src.domain.models.status import TransactionStatus


def test_large_integers_are_encoded_as_strings() -> None:
    payload = json.loads(encode_json({"small": MAX_SAFE_INTEGER, "big": MAX_SAFE_INTEGER + 1, "neg": -(2**60)}))

    assert payload["small"] == MAX_SAFE_INTEGER
    assert payload["big"] == str(MAX_SAFE_INTEGER + 1)
    assert payload["neg"] == str(-(2**60))


def test_big_integers_round_trip_through_parse_int() -> None:
    units = 10**30
    assert parse_int(to_wire(units)) == units
    assert parse_int("0xff") == 255
    with pytest.raises(ValueError):
        parse_int(True)
    with pytest.raises(ValueError):
        parse_int(1.5)


def test_wire_conversion_of_domain_values() -> None:
    assert to_wire(Decimal("10000.50")) == "10000.50"
    assert to_wire(AttemptState.PENDING) == "pending"
    assert to_wire(b"\x01\x02") == "0x0102"
    assert to_wire((1, 2)) == [1, 2]
    assert to_wire(SubmissionHandle("0xabc")) == {"tx_hash": "0xabc"}


def test_status_payload() -> None:
    status = TransactionStatus(
        state=AttemptState.FAILED,
        epoch=3,
        error=DirectChannelError("timeout"),
        submission_handle=SubmissionHandle("0xabc"),
    )
    payload = json.loads(encode_json(status))

    assert payload["state"] == "failed"
    assert payload["epoch"] == 3
    assert payload["error"] == "timeout"
    assert payload["failure_reason"] == "timeout"
    assert payload["submission_handle"] == "0xabc"
    assert payload["is_pending"] is False
