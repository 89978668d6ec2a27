"""
Reconnection Policy

Pure decision function used by RealtimeFeed after every close.

    attempt 0 -> base
    attempt 1 -> base * 2
    attempt k -> base * 2^k

No jitter and no cap: the number of attempts is bounded by
max_reconnect_attempts instead. The attempt count passed in is the value
before it is incremented for the retry being decided.
"""

from dataclasses import dataclass

from core.schemas import ConnectionConfig


@dataclass(frozen=True)
class ReconnectDecision:
    """Outcome of one policy evaluation"""

    should_retry: bool
    attempt: int
    delay_ms: int = 0

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000


def decide_reconnect(
    reconnect_enabled: bool,
    attempts_so_far: int,
    max_attempts: int,
    base_delay_ms: int
) -> ReconnectDecision:
    """
    Decide whether to retry and after how long.

    Args:
        reconnect_enabled: Reconnection switch from the config
        attempts_so_far: Consecutive retries already scheduled since last open
        max_attempts: Maximum consecutive retries
        base_delay_ms: Delay of the first retry in milliseconds

    Returns:
        ReconnectDecision: should_retry False means stop

    Example:
        >>> decide_reconnect(True, 1, 5, 1000)
        ReconnectDecision(should_retry=True, attempt=1, delay_ms=2000)
    """
    if not reconnect_enabled or attempts_so_far >= max_attempts:
        return ReconnectDecision(should_retry=False, attempt=attempts_so_far)

    return ReconnectDecision(
        should_retry=True,
        attempt=attempts_so_far,
        delay_ms=base_delay_ms * 2 ** attempts_so_far
    )


def decide_from_config(config: ConnectionConfig, attempts_so_far: int) -> ReconnectDecision:
    """Evaluate the policy with the values carried by a ConnectionConfig"""
    return decide_reconnect(
        config.reconnect_enabled,
        attempts_so_far,
        config.max_reconnect_attempts,
        config.base_reconnect_delay_ms
    )
