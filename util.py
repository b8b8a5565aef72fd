# Small helpers shared by the engine, the controllers and the CLIs.

from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

# Toggle detailed debug logging
DEBUG = False


def set_debug(enabled: bool) -> None:
    global DEBUG
    DEBUG = enabled


def debug(msg: str) -> None:
    if DEBUG:
        print(f"DEBUG: {msg}")


def random_element(items: Iterable[T], rng: random.Random) -> Optional[T]:
    """Return a uniformly chosen element of ``items``, or None if it is empty."""
    pool = list(items)
    if not pool:
        return None
    return pool[rng.randrange(len(pool))]


def shuffled(items: Iterable[T], rng: random.Random) -> List[T]:
    result = list(items)
    rng.shuffle(result)
    return result


def join_names(words: Sequence) -> str:
    """Join names for narration: ``a``, ``a and b``, ``a, b, and c``."""
    words = [str(w) for w in words]
    if not words:
        return "no one"
    if len(words) == 1:
        return words[0]
    if len(words) == 2:
        return f"{words[0]} and {words[1]}"
    return ", ".join(words[:-1]) + f", and {words[-1]}"


def prompt(msg: str) -> str:
    return input(f"[ ?? ] {msg}: ").strip()
