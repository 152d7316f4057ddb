import math


def compute_session_price(hourly_rate: float | None, duration_minutes: int, base_price: int | None) -> int:
    if hourly_rate:
        return math.floor(hourly_rate / 60 * duration_minutes + 0.5)
    return base_price or 0
