"""Six-digit join PINs."""

import random
import re

PIN_MIN = 100000
PIN_MAX = 999999

_PIN_RE = re.compile(r'\d{6}')
_WHITESPACE_RE = re.compile(r'\s+')


def generate_pin(rng=None) -> str:
    return str((rng or random).randint(PIN_MIN, PIN_MAX))


def clean_pin(pin) -> str:
    """Strip the spacing players type or copy from the host screen."""
    return _WHITESPACE_RE.sub('', pin or '')


def is_valid_pin(pin) -> bool:
    return _PIN_RE.fullmatch(clean_pin(pin)) is not None


def format_pin(pin: str) -> str:
    if len(pin) != 6:
        return pin
    return f"{pin[:3]} {pin[3:]}"
