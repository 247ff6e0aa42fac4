"""Unit conversions.

Every size is normalized to kilobytes and every time to integer
milliseconds (timestamps), microseconds (durations) or centiseconds
(CPU times) as soon as it leaves a regex group. JVM logs use either '.'
or ',' as decimal separator depending on locale.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_EVEN, Decimal

SIZE_TOKEN: re.Pattern[str] = re.compile(r"(?P<value>\d+(?:[.,]\d+)?)(?P<unit>[BKMG])")


def to_decimal(text: str) -> Decimal:
    """Parse a JVM decimal, accepting ',' as the decimal separator."""
    return Decimal(text.strip().replace(",", "."))


def _scale(text: str, factor: int) -> int:
    return int((to_decimal(text) * factor).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def secs_to_millis(text: str) -> int:
    return _scale(text, 1000)


def secs_to_micros(text: str) -> int:
    """'0.0375060' -> 37506."""
    return _scale(text, 1_000_000)


def secs_to_centis(text: str) -> int:
    return _scale(text, 100)


def millis_to_micros(text: str) -> int:
    return _scale(text, 1000)


def nanos_to_micros(text: str) -> int:
    return int((Decimal(text) / 1000).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def micros_to_millis(micros: int) -> int:
    return int((Decimal(micros) / 1000).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def millis_to_secs_text(millis: int) -> str:
    """Render milliseconds as the JVM's 'S.mmm' uptime notation."""
    return f"{millis // 1000}.{millis % 1000:03d}"


def parse_size_to_kb(size_text: str) -> int:
    """Parse a JVM size token like '1024K', '1.5M', '0.0B' into KB."""
    match = SIZE_TOKEN.fullmatch(size_text.strip())
    if not match:
        raise ValueError(f"Unrecognized size token: {size_text}")
    value = to_decimal(match.group("value"))
    unit = match.group("unit")
    if unit == "B":
        return int(value / 1024)
    if unit == "K":
        return int(value)
    if unit == "M":
        return int(value * 1024)
    if unit == "G":
        return int(value * 1024 * 1024)
    raise ValueError(f"Unsupported size unit: {unit}")


def percent(part: int, whole: int) -> int:
    """Integer percentage of part/whole, ratio rounded half-even to 2 places first."""
    ratio = (Decimal(part) / Decimal(whole)).quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)
    return int(ratio * 100)
