"""
vault.timelock: request-then-activate window for the emergency pause.

A request stores an ETA of `now + delay`. Activation is allowed while
`eta <= now <= eta + grace`; after that the request is stale and must be
made again.
"""

from __future__ import annotations

from typing import Optional

from core.errors import TimelockNotReady


def schedule(now: float, delay: float) -> float:
    return now + delay


def is_ready(eta: Optional[float], now: float, grace: float) -> bool:
    return eta is not None and eta <= now <= eta + grace


def require_ready(eta: Optional[float], now: float, grace: float) -> None:
    if eta is None:
        raise TimelockNotReady("no emergency pause has been requested")
    if now < eta:
        raise TimelockNotReady(
            "emergency delay has not elapsed", eta=eta, now=now, remaining=eta - now
        )
    if now > eta + grace:
        raise TimelockNotReady(
            "emergency request expired; request again", eta=eta, expired_at=eta + grace
        )


__all__ = ["schedule", "is_ready", "require_ready"]
