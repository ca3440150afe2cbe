import time


def now_ms() -> int:
    """Wall-clock time in milliseconds since the epoch; hold expiries use this unit."""
    return int(time.time() * 1000)
