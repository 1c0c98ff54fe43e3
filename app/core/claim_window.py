from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_WINDOW_SECONDS = 3600
MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class ClaimWindowDecision:
    allowed: bool
    minutes_remaining: int
    wait_message: str


def format_wait_message(minutes_remaining: int) -> str:
    # A timestamp in the future (clock moved back) can push this past 60.
    if minutes_remaining > 60:
        return "1 hour"
    suffix = "" if minutes_remaining == 1 else "s"
    return f"{minutes_remaining} minute{suffix}"


def evaluate_claim_window(
    last_claim_ms: int | None,
    now_ms: int,
    *,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> ClaimWindowDecision:
    """Decide whether a visitor may claim again.

    ``last_claim_ms`` is the epoch-milliseconds of the previous successful
    claim (``None`` when there is none). The visitor is eligible once a full
    window has elapsed; exactly one window counts as elapsed.
    """
    if last_claim_ms is None:
        return ClaimWindowDecision(allowed=True, minutes_remaining=0, wait_message="")

    window_ms = window_seconds * 1000
    elapsed_ms = now_ms - last_claim_ms
    if elapsed_ms >= window_ms:
        return ClaimWindowDecision(allowed=True, minutes_remaining=0, wait_message="")

    minutes_remaining = math.ceil((last_claim_ms + window_ms - now_ms) / MS_PER_MINUTE)
    return ClaimWindowDecision(
        allowed=False,
        minutes_remaining=minutes_remaining,
        wait_message=format_wait_message(minutes_remaining),
    )
