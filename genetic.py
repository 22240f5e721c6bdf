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
Genetic algorithm for evolving melodic phrases.

Individuals are note sequences. Fitness is a weighted sum of the
``MusicalAnalysis`` descriptors, oriented so that higher is better; phrases
whose length leaves ``length_range`` keep competing at half fitness rather
than being discarded.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from analysis import MAJOR_SCALE, MusicalAnalysis
from jmon import Note, note_value_to_beats
from random_sources import RandomLike, resolve_random

logger = logging.getLogger(__name__)

FitnessFunction = Callable[[List[Note]], float]

BALANCE_CENTER = 60.0
OCTAVE_RANGE = (4, 6)
VELOCITY_RANGE = (0.5, 1.0)


@dataclass(frozen=True)
class FitnessWeights:
    """
    Weights of the analysis terms. They are used as given (no
    renormalisation); only the ranking of fitness values matters.
    """

    gini: float = 0.2
    balance: float = 0.15
    motif: float = 0.25
    dissonance: float = 0.2
    rhythmic: float = 0.2

    def __post_init__(self):
        for item in fields(self):
            if getattr(self, item.name) < 0:
                raise ValueError(f"Fitness weight '{item.name}' must be >= 0")

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, float]) -> "FitnessWeights":
        """Defaults updated with ``overrides``; unknown names are rejected."""
        known = {item.name for item in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown fitness weights: {', '.join(sorted(unknown))}")
        return replace(cls(), **{name: float(value) for name, value in overrides.items()})


@dataclass
class GeneticOptions:
    """
    Configuration of a ``GeneticAlgorithm`` run.

    ``durations`` accepts beats or note values (``"4n"``, ``"8n."``); they are
    stored as beats. ``scale`` lists the pitch classes new pitches are drawn
    from and against which dissonance is measured.
    """

    population_size: int = 50
    generations: int = 100
    mutation_rate: float = 0.1
    crossover_rate: float = 0.8
    elitism_rate: float = 0.1
    fitness_weights: Union[FitnessWeights, Mapping[str, float]] = field(default_factory=FitnessWeights)
    scale: Sequence[int] = MAJOR_SCALE
    durations: Sequence[Union[str, float]] = ("4n", "8n", "2n", "16n")
    length_range: Tuple[int, int] = (8, 16)
    tournament_size: int = 3

    def __post_init__(self):
        if self.population_size < 1:
            raise ValueError("population_size must be >= 1")
        if self.generations < 0:
            raise ValueError("generations must be >= 0")
        for name in ("mutation_rate", "crossover_rate", "elitism_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if self.tournament_size < 1:
            raise ValueError("tournament_size must be >= 1")

        if not isinstance(self.fitness_weights, FitnessWeights):
            self.fitness_weights = FitnessWeights.from_mapping(self.fitness_weights)

        self.scale = tuple(int(pc) for pc in self.scale)
        if not self.scale:
            raise ValueError("scale cannot be empty")
        if any(not 0 <= pc < 12 for pc in self.scale):
            raise ValueError("scale entries must be pitch classes in 0..11")

        self.durations = tuple(note_value_to_beats(d) for d in self.durations)
        if not self.durations:
            raise ValueError("durations cannot be empty")
        if any(d <= 0 for d in self.durations):
            raise ValueError("durations must be positive")

        low, high = (int(v) for v in self.length_range)
        if low < 1 or low > high:
            raise ValueError("length_range must satisfy 1 <= min <= max")
        self.length_range = (low, high)


@dataclass
class Individual:
    genes: List[Note]
    fitness: float = 0.0
    age: int = 0

    def copy(self) -> "Individual":
        return Individual(genes=[note.copy() for note in self.genes], fitness=self.fitness, age=self.age)


def recalculate_timing(genes: Sequence[Note]) -> None:
    """Lay notes end to end: each ``time`` is the sum of the preceding durations."""
    time = 0.0
    for note in genes:
        note.time = time
        time += note.duration


class GeneticAlgorithm:
    """
    Evolve note sequences under a weighted musical-analysis fitness.

    Each generation keeps the top ``elitism_rate`` share unchanged (aged by
    one) and fills the rest with offspring from tournament selection,
    single-point crossover and mutation. The best individual ever seen is
    tracked across the run, since elitism alone does not make per-generation
    fitness monotonic.

    Args:
        options: ``GeneticOptions``; defaults are used when omitted.
        seed: Seeds a private linear congruential generator.
        rng: Explicit ``RandomSource`` or numpy ``Generator``; overrides ``seed``.
    """

    def __init__(
        self,
        options: Optional[GeneticOptions] = None,
        *,
        seed: Optional[int] = None,
        rng: Optional[RandomLike] = None,
    ):
        self.options = options if options is not None else GeneticOptions()
        self.rng = resolve_random(rng, seed)

        self.population: List[Individual] = []
        self.generation = 0
        self.best_fitness = float("-inf")
        self.best_individual: Optional[Individual] = None
        self.history: List[Dict[str, float]] = []
        self._custom_fitness: Optional[FitnessFunction] = None

    # ------------------------------------------------------------------
    # Random material
    # ------------------------------------------------------------------

    def random_pitch(self) -> int:
        octave = self.rng.randint(*OCTAVE_RANGE)
        return 12 * octave + self.rng.choice(self.options.scale)

    def random_duration(self) -> float:
        return self.rng.choice(self.options.durations)

    def random_velocity(self) -> float:
        return self.rng.uniform(*VELOCITY_RANGE)

    def random_note(self) -> Note:
        return Note(
            pitch=self.random_pitch(),
            time=0.0,
            duration=self.random_duration(),
            velocity=self.random_velocity(),
        )

    def create_random_individual(self) -> Individual:
        length = self.rng.randint(*self.options.length_range)
        genes = [self.random_note() for _ in range(length)]
        recalculate_timing(genes)
        return Individual(genes=genes)

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    def set_custom_fitness(self, fitness_function: FitnessFunction) -> None:
        """Replace the weighted-analysis fitness with ``fitness_function(genes)``."""
        if not callable(fitness_function):
            raise ValueError("fitness_function must be callable")
        self._custom_fitness = fitness_function

    def calculate_fitness(self, genes: List[Note]) -> float:
        if self._custom_fitness is not None:
            return float(self._custom_fitness(genes))

        analysis = MusicalAnalysis.analyze(genes, scale=self.options.scale)
        weights = self.options.fitness_weights

        fitness = 0.0
        fitness += weights.gini * (1.0 - analysis["gini"])
        fitness += weights.balance * (1.0 - abs(analysis["balance"] - BALANCE_CENTER) / BALANCE_CENTER)
        fitness += weights.motif * analysis["motif"]
        fitness += weights.dissonance * (1.0 - analysis["dissonance"])
        fitness += weights.rhythmic * analysis["rhythmic"]

        low, high = self.options.length_range
        if not low <= len(genes) <= high:
            fitness *= 0.5

        return max(0.0, fitness)

    def evaluate_population(self) -> None:
        for individual in self.population:
            individual.fitness = self.calculate_fitness(individual.genes)
        self.population.sort(key=lambda individual: individual.fitness, reverse=True)

    def _track_best(self) -> None:
        current = max(
            (individual for individual in self.population if not math.isnan(individual.fitness)),
            key=lambda individual: individual.fitness,
            default=None,
        )
        if current is not None and current.fitness > self.best_fitness:
            self.best_fitness = current.fitness
            self.best_individual = current.copy()

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def select_parent(self) -> Individual:
        """Tournament selection; returns a copy of the fittest contender."""
        contenders = [self.rng.choice(self.population) for _ in range(self.options.tournament_size)]
        return max(contenders, key=lambda individual: individual.fitness).copy()

    def crossover(self, parent1: Individual, parent2: Individual) -> Tuple[Individual, Individual]:
        """Single-point crossover at a point within the shorter parent."""
        shorter = min(len(parent1.genes), len(parent2.genes))
        point = self.rng.randrange(shorter) if shorter > 0 else 0
        genes1 = [n.copy() for n in parent1.genes[:point]] + [n.copy() for n in parent2.genes[point:]]
        genes2 = [n.copy() for n in parent2.genes[:point]] + [n.copy() for n in parent1.genes[point:]]
        recalculate_timing(genes1)
        recalculate_timing(genes2)
        return Individual(genes=genes1), Individual(genes=genes2)

    def mutate(self, individual: Individual) -> None:
        """
        Apply one random mutation in place: pitch, duration or velocity of one
        note, or a structural insertion/deletion within ``length_range``.
        """
        genes = individual.genes
        low, high = self.options.length_range
        roll = self.rng.random()

        if genes and roll < 0.3:
            genes[self.rng.randrange(len(genes))].pitch = self.random_pitch()
        elif genes and roll < 0.6:
            genes[self.rng.randrange(len(genes))].duration = self.random_duration()
        elif genes and roll < 0.8:
            genes[self.rng.randrange(len(genes))].velocity = self.random_velocity()
        elif self.rng.random() < 0.5 and len(genes) < high:
            genes.insert(self.rng.randrange(len(genes) + 1), self.random_note())
        elif len(genes) > low:
            del genes[self.rng.randrange(len(genes))]

        recalculate_timing(genes)

    def create_next_generation(self) -> List[Individual]:
        size = self.options.population_size
        elite_count = int(size * self.options.elitism_rate)

        next_generation = []
        for elite in self.population[:elite_count]:
            survivor = elite.copy()
            survivor.age += 1
            next_generation.append(survivor)

        while len(next_generation) < size:
            parent1 = self.select_parent()
            parent2 = self.select_parent()

            if self.rng.random() < self.options.crossover_rate:
                offspring1, offspring2 = self.crossover(parent1, parent2)
            else:
                offspring1, offspring2 = parent1, parent2

            for offspring in (offspring1, offspring2):
                if self.rng.random() < self.options.mutation_rate:
                    self.mutate(offspring)
                offspring.age = 0

            next_generation.append(offspring1)
            if len(next_generation) < size:
                next_generation.append(offspring2)

        return next_generation

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def initialize_population(self) -> None:
        self.population = [self.create_random_individual() for _ in range(self.options.population_size)]
        self.evaluate_population()

    def evolve(self) -> Individual:
        """
        Run the configured number of generations.

        Returns:
            A copy of the fittest individual seen during the whole run.
        """
        self.generation = 0
        self.best_fitness = float("-inf")
        self.best_individual = None
        self.history.clear()

        self.initialize_population()
        self._track_best()

        for generation in range(self.options.generations):
            self.generation = generation
            self.population = self.create_next_generation()
            self.evaluate_population()
            self._track_best()

            stats = self.get_statistics()
            self.history.append(stats)
            logger.debug(
                "Generation %d: max = %.4f | avg = %.4f | best so far = %.4f",
                generation + 1,
                stats["max_fitness"],
                stats["avg_fitness"],
                stats["best_all_time"],
            )

        logger.info(
            "Evolution finished after %d generations; best fitness %.4f",
            self.options.generations,
            self.best_fitness,
        )
        if self.best_individual is None:
            raise ValueError("Fitness function returned NaN for every individual; no best individual to return")
        return self.best_individual.copy()

    def get_best_individual(self) -> Individual:
        """Fittest member of the current population."""
        if not self.population:
            raise ValueError("Population is empty; call evolve() first")
        return self.population[0].copy()

    def get_statistics(self) -> Dict[str, Any]:
        if not self.population:
            raise ValueError("Population is empty; call evolve() first")
        fitnesses = [individual.fitness for individual in self.population]
        return {
            "generation": self.generation,
            "avg_fitness": sum(fitnesses) / len(fitnesses),
            "max_fitness": max(fitnesses),
            "min_fitness": min(fitnesses),
            "best_all_time": self.best_fitness,
            "population_size": len(self.population),
        }
