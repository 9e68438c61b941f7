from __future__ import annotations

import random
from typing import Optional, Sequence

_SYSTEM_RANDOM = random.SystemRandom()


def pick_winner(numbers: Sequence[int], rng: Optional[random.Random] = None) -> int:
    if not numbers:
        raise ValueError("No sold numbers to draw from")
    chooser = rng or _SYSTEM_RANDOM
    return numbers[chooser.randrange(len(numbers))]
