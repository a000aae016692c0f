from datetime import datetime, timezone

import pytest

from order_numbers import next_order_number, parse_order_number


def test_sequence_increments_within_a_day(mongo):
    now = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert next_order_number(mongo, now) == "ORD-20250115-0001"
    assert next_order_number(mongo, now) == "ORD-20250115-0002"


def test_sequence_resets_on_a_new_day(mongo):
    next_order_number(mongo, datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc))
    assert next_order_number(mongo, datetime(2025, 1, 16, 10, 0, tzinfo=timezone.utc)) == "ORD-20250116-0001"


def test_day_follows_store_timezone(mongo):
    # 20:00 UTC is already the next morning in Asia/Kolkata.
    assert next_order_number(mongo, datetime(2025, 1, 15, 20, 0, tzinfo=timezone.utc)) == "ORD-20250116-0001"


def test_sequence_grows_past_four_digits(mongo):
    mongo["counter"].insert_one({"_id": "order-20250115", "seq": 9999})
    number = next_order_number(mongo, datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc))
    assert number == "ORD-20250115-10000"
    assert parse_order_number(number)[1] == 10000


def test_parse_order_number():
    day, seq = parse_order_number("ORD-20250115-0042")
    assert day.isoformat() == "2025-01-15"
    assert seq == 42
    with pytest.raises(ValueError):
        parse_order_number("ORD-2025-1")
