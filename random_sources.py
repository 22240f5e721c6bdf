# Copyright 2025
# Damien Davison & Michael Maillet & Sacha Davison
# Recursive AI Devs
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at:
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Random sources for the evolutionary optimizers.

Each optimizer owns a ``RandomSource``. Seeded runs use a small linear
congruential generator so the same seed reproduces the same search; other
runs draw from a numpy ``Generator``. Either way the optimizers see one draw
interface and no process-wide random state is touched.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence, TypeVar, Union

import numpy as np

LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MODULUS = 2 ** 31

T = TypeVar("T")


class RandomSource(ABC):
    """
    Draw interface used by the optimizers.

    Subclasses supply ``random()``; integer and sequence draws scale that
    value up, so they depend on the high-order part of each draw.
    """

    @abstractmethod
    def random(self) -> float:
        """Uniform float in ``[0, 1)``."""

    def randrange(self, n: int) -> int:
        """Uniform integer in ``[0, n)``."""
        if n <= 0:
            raise ValueError(f"randrange() needs a positive bound, got {n}")
        return min(int(self.random() * n), n - 1)

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in ``[low, high]``."""
        if high < low:
            raise ValueError(f"Empty range for randint({low}, {high})")
        return low + self.randrange(high - low + 1)

    def choice(self, items: Sequence[T]) -> T:
        if len(items) == 0:
            raise IndexError("Cannot choose from an empty sequence")
        return items[self.randrange(len(items))]

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()


class LinearCongruentialRandom(RandomSource):
    """Stream driven by ``state = (a * state + c) mod 2**31``, returning ``state / 2**31``."""

    def __init__(self, seed: Optional[int] = None):
        self._state = 0
        self.seed(seed)

    def seed(self, seed: Optional[int] = None) -> None:
        if seed is None:
            seed = int(np.random.default_rng().integers(LCG_MODULUS))
        self._state = int(seed) % LCG_MODULUS

    def random(self) -> float:
        self._state = (LCG_MULTIPLIER * self._state + LCG_INCREMENT) % LCG_MODULUS
        return self._state / LCG_MODULUS

    def getstate(self) -> int:
        return self._state

    def setstate(self, state: int) -> None:
        self._state = int(state) % LCG_MODULUS


class GeneratorSource(RandomSource):
    """``RandomSource`` backed by a numpy ``Generator``."""

    def __init__(self, generator: Optional[np.random.Generator] = None):
        self.generator = generator if generator is not None else np.random.default_rng()

    def random(self) -> float:
        return float(self.generator.random())

    def randrange(self, n: int) -> int:
        if n <= 0:
            raise ValueError(f"randrange() needs a positive bound, got {n}")
        return int(self.generator.integers(n))


RandomLike = Union[RandomSource, np.random.Generator]


def resolve_random(rng: Optional[RandomLike] = None, seed: Optional[int] = None) -> RandomSource:
    """
    Pick the source an optimizer draws from.

    An explicit ``rng`` wins (numpy generators are wrapped); otherwise a seed
    gives a ``LinearCongruentialRandom`` and no seed gives a fresh numpy
    generator.
    """
    if rng is not None:
        if isinstance(rng, RandomSource):
            return rng
        if isinstance(rng, np.random.Generator):
            return GeneratorSource(rng)
        raise TypeError(f"Unsupported random source {type(rng).__name__}")
    if seed is not None:
        return LinearCongruentialRandom(seed)
    return GeneratorSource(np.random.default_rng())


def resolve_numpy_rng(rng: Optional[np.random.Generator] = None, seed: Optional[int] = None) -> np.random.Generator:
    if rng is not None:
        return rng
    return np.random.default_rng(seed)
