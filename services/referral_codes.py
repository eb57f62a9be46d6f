# services/referral_codes.py
"""
Referral code generator.

Codes look like `AK-042`: the user's initials (a random letter stands in for
any initial that is missing or not a Latin letter), a hyphen and a
zero-padded 3-digit number. The number is re-rolled on collision, up to
`max_attempts` probes against persistence.
"""

import logging
import random
import string
from typing import Awaitable, Callable, Optional

from core.errors import GenerationExhausted

logger = logging.getLogger("refbot.referral_codes")

CodeExists = Callable[[str], Awaitable[bool]]


def initial(name: Optional[str]) -> Optional[str]:
    """First letter of a name as uppercase A-Z, or None."""
    if not name:
        return None
    letter = name.strip()[:1].upper()
    return letter if letter and letter in string.ascii_uppercase else None


class ReferralCodeGenerator:
    def __init__(self, exists: CodeExists, max_attempts: int = 50, rng: random.Random = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.exists = exists
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    def candidate(self, first_name: Optional[str] = None, last_name: Optional[str] = None) -> str:
        letters = "".join(
            initial(name) or self.rng.choice(string.ascii_uppercase) for name in (first_name, last_name)
        )
        return f"{letters}-{self.rng.randint(0, 999):03d}"

    async def generate(self, first_name: Optional[str] = None, last_name: Optional[str] = None) -> str:
        for attempt in range(1, self.max_attempts + 1):
            code = self.candidate(first_name, last_name)
            if not await self.exists(code):
                logger.debug("Generated referral code %s after %d attempt(s)", code, attempt)
                return code
        logger.error("No free referral code after %d attempts", self.max_attempts)
        raise GenerationExhausted(f"No free referral code after {self.max_attempts} attempts")
