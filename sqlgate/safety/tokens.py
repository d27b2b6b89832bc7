"""Confirmation token issuer."""

from __future__ import annotations

import secrets
import time
from typing import Callable

TOKEN_PREFIX = "CONF"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class TokenIssuer:
    """Mints ``CONF_<time>_<random>`` tokens.

    The time part is the monotonic clock in milliseconds (base 36), the
    random part 48 bits from ``secrets``. Tokens only need to be unique
    within one process and one TTL window.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, random_bytes: int = 6) -> None:
        self._clock = clock
        self._random_bytes = random_bytes

    def __call__(self) -> str:
        millis = int(self._clock() * 1000)
        token = f"{TOKEN_PREFIX}_{_base36(millis)}_{secrets.token_hex(self._random_bytes)}"
        return token.upper()
