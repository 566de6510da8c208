"""
Duration helpers - parse and render Go-style duration strings ("90s", "1m30s", "-2m")
"""
import re
from typing import Union

_UNIT_SECONDS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}

# Longer units first so "ms" wins over "m"
_COMPONENT = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a duration into seconds. Bare numbers are taken as seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("Invalid duration: empty string")

    sign = 1.0
    if text[0] in '+-':
        sign = -1.0 if text[0] == '-' else 1.0
        text = text[1:]

    if text == '0':
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"Invalid duration: {value!r}")
    return sign * total


def format_duration(seconds: float) -> str:
    """Render seconds the way Go's time.Duration prints itself"""
    if seconds == 0:
        return "0s"

    sign = "-" if seconds < 0 else ""
    remaining = abs(seconds)

    if remaining < 1:
        for unit, scale in (("ms", 1e-3), ("us", 1e-6)):
            if remaining >= scale:
                return f"{sign}{_trim(remaining / scale)}{unit}"
        return f"{sign}{_trim(remaining / 1e-9)}ns"

    hours, rest = divmod(remaining, 3600)
    minutes, secs = divmod(rest, 60)

    text = f"{_trim(secs)}s"
    if hours or minutes:
        text = f"{int(minutes)}m{text}"
    if hours:
        text = f"{int(hours)}h{text}"
    return sign + text


def _trim(value: float) -> str:
    return f"{round(value, 9):.9f}".rstrip('0').rstrip('.')
