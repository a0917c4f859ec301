"""Fault-injection and randomization strategies."""

from __future__ import annotations

import random
from typing import Callable, Optional, Protocol

from .constants import DEFAULT_COLOUR_PROBABILITY, DEFAULT_FAILURE_PROBABILITY


class Chaos(Protocol):
    """Decides the randomized inputs of a request."""

    def should_fail(self) -> bool:
        """Return ``True`` when the request should raise an injected failure."""

    def pick_colour(self) -> bool:
        """Return the value of one colour flag."""


class RandomChaos:
    """Independent coin flips with configurable probabilities."""

    def __init__(
        self,
        failure_probability: float = DEFAULT_FAILURE_PROBABILITY,
        colour_probability: float = DEFAULT_COLOUR_PROBABILITY,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.failure_probability = failure_probability
        self.colour_probability = colour_probability
        self._rng = rng or random.Random()

    def should_fail(self) -> bool:
        return self._rng.random() < self.failure_probability

    def pick_colour(self) -> bool:
        return self._rng.random() < self.colour_probability


class ScriptedChaos:
    """Deterministic decisions supplied by callables.

    Handy for tests and for replaying a known sequence of requests.
    """

    def __init__(
        self,
        fail: Callable[[], bool] = lambda: False,
        colour: Callable[[], bool] = lambda: False,
    ) -> None:
        self._fail = fail
        self._colour = colour

    def should_fail(self) -> bool:
        return self._fail()

    def pick_colour(self) -> bool:
        return self._colour()


def cycle(*values: bool) -> Callable[[], bool]:
    """Return a callable that yields ``values`` in a loop."""
    state = {"i": 0}

    def _next() -> bool:
        value = values[state["i"] % len(values)]
        state["i"] += 1
        return value

    return _next
