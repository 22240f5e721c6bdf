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
Rhythm generation inside a single measure.

``GeneticRhythm`` searches for a sequence of durations, drawn from an allowed
set, whose total comes as close as possible to the measure length. Fitness is
a cost (distance from the measure length), so lower is better.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from random_sources import RandomLike, resolve_random

logger = logging.getLogger(__name__)

# Tolerance for float sums of durations against the measure length.
EPSILON = 1e-9


@dataclass(frozen=True)
class RhythmNote:
    duration: float
    offset: float


RhythmCandidate = List[RhythmNote]


def _validate_durations(durations: Sequence[float]) -> List[float]:
    durations = [float(d) for d in durations]
    if not durations:
        raise ValueError("durations cannot be empty")
    if any(d <= 0 for d in durations):
        raise ValueError("durations must be positive")
    return durations


def total_duration(rhythm: Sequence[RhythmNote]) -> float:
    return sum(note.duration for note in rhythm)


class GeneticRhythm:
    """
    Evolve rhythms that fill a measure.

    Every generation is fully replaced by children (no elitism): each child
    comes from two binary-tournament parents, single-point crossover and
    optional single-note mutation.

    Args:
        seed: Seeds a private linear congruential generator for reproducible runs.
        population_size: Candidates per generation.
        measure_length: Target total duration, in beats.
        max_generations: Number of generations to run.
        mutation_rate: Probability that a child is mutated.
        durations: Allowed note durations, in beats.
        rng: Explicit ``RandomSource`` or numpy ``Generator``; overrides ``seed``.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        population_size: int = 10,
        measure_length: float = 4.0,
        max_generations: int = 50,
        mutation_rate: float = 0.1,
        durations: Sequence[float] = (0.5, 1.0, 2.0),
        *,
        rng: Optional[RandomLike] = None,
    ):
        if population_size < 1:
            raise ValueError("population_size must be >= 1")
        if measure_length <= 0:
            raise ValueError("measure_length must be positive")
        if max_generations < 0:
            raise ValueError("max_generations must be >= 0")
        if not 0.0 <= mutation_rate <= 1.0:
            raise ValueError("mutation_rate must be between 0 and 1")

        self.population_size = int(population_size)
        self.measure_length = float(measure_length)
        self.max_generations = int(max_generations)
        self.mutation_rate = float(mutation_rate)
        self.durations = _validate_durations(durations)
        self.rng = resolve_random(rng, seed)

        self.history: List[Dict[str, float]] = []
        self.population: List[RhythmCandidate] = self.initialize_population()

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def initialize_population(self) -> List[RhythmCandidate]:
        return [self.create_random_rhythm() for _ in range(self.population_size)]

    def create_random_rhythm(self) -> RhythmCandidate:
        """Append random durations until the next pick would overflow the measure."""
        rhythm: RhythmCandidate = []
        total = 0.0
        while total < self.measure_length - EPSILON:
            duration = self.rng.choice(self.durations)
            if total + duration > self.measure_length + EPSILON:
                break
            rhythm.append(RhythmNote(duration=duration, offset=total))
            total += duration
        return rhythm

    def evaluate_fitness(self, rhythm: Sequence[RhythmNote]) -> float:
        """Distance between the rhythm's total duration and the measure length."""
        return abs(self.measure_length - total_duration(rhythm))

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def select_parent(self) -> RhythmCandidate:
        first = self.rng.choice(self.population)
        second = self.rng.choice(self.population)
        return first if self.evaluate_fitness(first) < self.evaluate_fitness(second) else second

    def crossover(self, parent1: RhythmCandidate, parent2: RhythmCandidate) -> RhythmCandidate:
        if not parent1 or not parent2:
            return list(parent1) if len(parent1) > len(parent2) else list(parent2)
        point = self.rng.randrange(min(len(parent1), len(parent2)))
        child = list(parent1[:point]) + list(parent2[point:])
        return self.ensure_measure_length(child)

    def ensure_measure_length(self, rhythm: Sequence[RhythmNote]) -> RhythmCandidate:
        """Re-derive offsets from durations and drop notes from the first overflow on."""
        adjusted: RhythmCandidate = []
        total = 0.0
        for note in rhythm:
            if total + note.duration > self.measure_length + EPSILON:
                break
            adjusted.append(RhythmNote(duration=note.duration, offset=total))
            total += note.duration
        return adjusted

    def mutate(self, rhythm: RhythmCandidate) -> RhythmCandidate:
        """
        Maybe replace one note's duration with another allowed duration that
        still ends before the next onset (or the end of the measure).

        When no allowed duration fits the slot the rhythm is returned as is.
        """
        if not rhythm or self.rng.random() >= self.mutation_rate:
            return list(rhythm)

        mutated = list(rhythm)
        index = self.rng.randrange(len(mutated))
        note = mutated[index]
        next_offset = mutated[index + 1].offset if index < len(mutated) - 1 else self.measure_length
        max_duration = next_offset - note.offset

        candidates = [d for d in self.durations if d <= max_duration + EPSILON]
        if not candidates:
            logger.debug("No allowed duration fits at offset %g; mutation skipped", note.offset)
            return mutated

        mutated[index] = RhythmNote(duration=self.rng.choice(candidates), offset=note.offset)
        return mutated

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def best(self) -> RhythmCandidate:
        """Lowest-cost member of the current population, sorted by offset."""
        best = min(self.population, key=self.evaluate_fitness)
        return sorted(best, key=lambda note: note.offset)

    def generate(self) -> RhythmCandidate:
        """Run ``max_generations`` generations and return the best rhythm."""
        self.history.clear()
        for generation in range(self.max_generations):
            new_population = []
            for _ in range(self.population_size):
                parent1 = self.select_parent()
                parent2 = self.select_parent()
                child = self.mutate(self.crossover(parent1, parent2))
                child.sort(key=lambda note: note.offset)
                new_population.append(child)
            self.population = new_population

            costs = [self.evaluate_fitness(candidate) for candidate in self.population]
            entry = {
                "generation": generation + 1,
                "best_cost": min(costs),
                "mean_cost": sum(costs) / len(costs),
            }
            self.history.append(entry)
            logger.debug(
                "Generation %d: best cost = %.3f | mean cost = %.3f",
                entry["generation"],
                entry["best_cost"],
                entry["mean_cost"],
            )

        return self.best()


class Rhythm:
    """
    Front end for single-measure rhythms built from a duration vocabulary.

    Args:
        measure_length: Measure length in beats.
        durations: Allowed durations in beats.
    """

    def __init__(self, measure_length: float = 4.0, durations: Sequence[float] = (0.5, 1.0, 2.0)):
        if measure_length <= 0:
            raise ValueError("measure_length must be positive")
        self.measure_length = float(measure_length)
        self.durations = _validate_durations(durations)

    def random(
        self,
        seed: Optional[int] = None,
        rest_probability: float = 0.0,
        max_iter: int = 100,
        *,
        rng: Optional[RandomLike] = None,
    ) -> RhythmCandidate:
        """
        Draw durations at random until the measure is full.

        A draw that would overflow is discarded, and with ``rest_probability``
        a fitting draw is skipped. Every draw counts against ``max_iter``;
        running out emits a ``RuntimeWarning`` and returns the partial rhythm.
        """
        if not 0.0 <= rest_probability < 1.0:
            raise ValueError("rest_probability must be in [0, 1)")
        if max_iter < 1:
            raise ValueError("max_iter must be >= 1")
        rng = resolve_random(rng, seed)

        rhythm: RhythmCandidate = []
        total = 0.0
        for _ in range(max_iter):
            if total >= self.measure_length - EPSILON:
                break
            duration = rng.choice(self.durations)
            if total + duration > self.measure_length + EPSILON:
                continue
            if rng.random() < rest_probability:
                continue
            rhythm.append(RhythmNote(duration=duration, offset=total))
            total += duration
        else:
            if total < self.measure_length - EPSILON:
                warnings.warn(
                    "Max iterations reached. The sum of the durations is not equal "
                    "to the measure length.",
                    RuntimeWarning,
                    stacklevel=2,
                )

        return rhythm

    def darwin(
        self,
        seed: Optional[int] = None,
        population_size: int = 10,
        max_generations: int = 50,
        mutation_rate: float = 0.1,
        *,
        rng: Optional[RandomLike] = None,
    ) -> RhythmCandidate:
        """Evolve a rhythm for this measure with ``GeneticRhythm``."""
        optimizer = GeneticRhythm(
            seed=seed,
            population_size=population_size,
            measure_length=self.measure_length,
            max_generations=max_generations,
            mutation_rate=mutation_rate,
            durations=self.durations,
            rng=rng,
        )
        return optimizer.generate()
