#!/usr/bin/env python3
"""Best-effort extraction of numeric samples from arbitrary text."""
import re
from typing import List

# Optional sign, digits with an optional decimal point, optional exponent
NUMBER_PATTERN = re.compile(r'[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?')


def extract_samples(text: str) -> List[float]:
    """Return every numeric literal in ``text`` in left-to-right order.

    Matching is greedy, so ``"-3.5e2"`` is a single sample (-350.0).
    Duplicates are kept.
    """
    if not text:
        return []
    return [float(match) for match in NUMBER_PATTERN.findall(text)]
