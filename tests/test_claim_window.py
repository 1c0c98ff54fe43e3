from app.core.claim_window import evaluate_claim_window, format_wait_message

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
NOW_MS = 1_700_000_000_000


def test_no_previous_claim_is_allowed():
    decision = evaluate_claim_window(None, NOW_MS)

    assert decision.allowed is True
    assert decision.minutes_remaining == 0
    assert decision.wait_message == ""


def test_exactly_one_window_elapsed_is_allowed():
    decision = evaluate_claim_window(NOW_MS - HOUR_MS, NOW_MS)

    assert decision.allowed is True


def test_claim_45_minutes_ago_waits_15_minutes():
    decision = evaluate_claim_window(NOW_MS - 45 * MINUTE_MS, NOW_MS)

    assert decision.allowed is False
    assert decision.minutes_remaining == 15
    assert decision.wait_message == "15 minutes"


def test_partial_minute_rounds_up():
    decision = evaluate_claim_window(NOW_MS - MINUTE_MS, NOW_MS)

    assert decision.minutes_remaining == 59
    assert decision.wait_message == "59 minutes"

    almost_done = evaluate_claim_window(NOW_MS - HOUR_MS + 1, NOW_MS)
    assert almost_done.allowed is False
    assert almost_done.minutes_remaining == 1
    assert almost_done.wait_message == "1 minute"


def test_future_timestamp_is_capped_in_wait_message():
    decision = evaluate_claim_window(NOW_MS + 30 * MINUTE_MS, NOW_MS)

    assert decision.allowed is False
    assert decision.minutes_remaining == 90
    assert decision.wait_message == "1 hour"


def test_custom_window_length():
    decision = evaluate_claim_window(NOW_MS - 4 * MINUTE_MS, NOW_MS, window_seconds=300)

    assert decision.allowed is False
    assert decision.wait_message == "1 minute"


def test_format_wait_message_pluralization():
    assert format_wait_message(1) == "1 minute"
    assert format_wait_message(2) == "2 minutes"
    assert format_wait_message(60) == "60 minutes"
    assert format_wait_message(61) == "1 hour"
