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

import numpy as np
import pytest

from genetic import (
    FitnessWeights,
    GeneticAlgorithm,
    GeneticOptions,
    Individual,
    recalculate_timing,
)
from jmon import Note
from test_utils import create_phrase


def _small_options(**overrides):
    settings = dict(population_size=16, generations=12)
    settings.update(overrides)
    return GeneticOptions(**settings)


def test_best_individual_never_worse_than_final_population():
    for seed in range(3):
        algorithm = GeneticAlgorithm(_small_options(), seed=seed)
        best = algorithm.evolve()

        final_best = max(individual.fitness for individual in algorithm.population)
        assert algorithm.best_fitness >= final_best
        assert best.fitness == algorithm.best_fitness
        assert algorithm.history[-1]["best_all_time"] == algorithm.best_fitness


def test_lengths_stay_within_range():
    for seed in range(5):
        algorithm = GeneticAlgorithm(_small_options(mutation_rate=0.9, length_range=(8, 16)), seed=seed)
        best = algorithm.evolve()
        assert 8 <= len(best.genes) <= 16
        for individual in algorithm.population:
            assert 8 <= len(individual.genes) <= 16


def test_genes_are_well_formed():
    options = _small_options()
    algorithm = GeneticAlgorithm(options, seed=4)
    best = algorithm.evolve()

    time = 0.0
    for note in best.genes:
        assert note.pitch % 12 in options.scale
        assert 48 <= note.pitch < 84
        assert note.duration in options.durations
        assert 0.5 <= note.velocity <= 1.0
        assert note.time == pytest.approx(time)
        time += note.duration


def test_same_seed_reproduces_run():
    first = GeneticAlgorithm(_small_options(), seed=21).evolve()
    second = GeneticAlgorithm(_small_options(), seed=21).evolve()
    assert first.genes == second.genes
    assert first.fitness == second.fitness


def test_history_and_statistics():
    algorithm = GeneticAlgorithm(_small_options(generations=5), seed=1)
    with pytest.raises(ValueError, match="Population is empty"):
        algorithm.get_statistics()
    with pytest.raises(ValueError, match="Population is empty"):
        algorithm.get_best_individual()

    algorithm.evolve()
    assert [entry["generation"] for entry in algorithm.history] == [0, 1, 2, 3, 4]

    stats = algorithm.get_statistics()
    assert stats["population_size"] == 16
    tolerance = 1e-12
    assert stats["min_fitness"] - tolerance <= stats["avg_fitness"] <= stats["max_fitness"] + tolerance
    assert algorithm.get_best_individual().fitness == stats["max_fitness"]


def test_custom_fitness_drives_search():
    algorithm = GeneticAlgorithm(_small_options(generations=20), seed=6)
    algorithm.set_custom_fitness(lambda genes: sum(note.pitch for note in genes) / len(genes))
    best = algorithm.evolve()

    initial_best = algorithm.history[0]["best_all_time"]
    assert best.fitness >= initial_best
    assert best.fitness == pytest.approx(sum(n.pitch for n in best.genes) / len(best.genes))

    with pytest.raises(ValueError):
        algorithm.set_custom_fitness(42)


def test_default_fitness_rewards_scale_and_penalises_length():
    algorithm = GeneticAlgorithm(_small_options(length_range=(4, 8)), seed=0)
    in_scale = create_phrase((60, 62, 64, 65, 67, 65))
    chromatic = create_phrase((61, 63, 66, 68, 70, 61))
    assert algorithm.calculate_fitness(in_scale) > algorithm.calculate_fitness(chromatic)

    too_long = create_phrase((60, 62, 64, 65, 67, 65) * 2)
    assert algorithm.calculate_fitness(too_long) < algorithm.calculate_fitness(in_scale)
    assert algorithm.calculate_fitness([]) >= 0.0


def test_crossover_copies_genes():
    algorithm = GeneticAlgorithm(_small_options(), seed=2)
    parent1 = Individual(create_phrase((60, 62, 64, 65)))
    parent2 = Individual(create_phrase((72, 71, 69, 67, 65)))

    child1, child2 = algorithm.crossover(parent1, parent2)
    assert len(child1.genes) + len(child2.genes) == 9
    for child in (child1, child2):
        for note in child.genes:
            assert all(note is not original for original in parent1.genes + parent2.genes)

    child1.genes[0].pitch = 0
    assert parent1.genes[0].pitch == 60 and parent2.genes[0].pitch == 72


def test_mutation_respects_length_bounds():
    algorithm = GeneticAlgorithm(_small_options(length_range=(3, 3)), seed=8)
    individual = Individual(create_phrase((60, 62, 64)))
    for _ in range(50):
        algorithm.mutate(individual)
        assert len(individual.genes) == 3


def test_recalculate_timing():
    genes = [Note(60, 5.0, 1.0), Note(62, 0.0, 0.5), Note(64, 9.0, 2.0)]
    recalculate_timing(genes)
    assert [note.time for note in genes] == [0.0, 1.0, 1.5]


def test_options_validation():
    options = GeneticOptions(durations=("4n", "8n.", 2.0))
    assert options.durations == (1.0, 0.75, 2.0)

    with pytest.raises(ValueError):
        GeneticOptions(population_size=0)
    with pytest.raises(ValueError):
        GeneticOptions(mutation_rate=1.2)
    with pytest.raises(ValueError):
        GeneticOptions(length_range=(10, 5))
    with pytest.raises(ValueError):
        GeneticOptions(scale=(0, 12))
    with pytest.raises(ValueError):
        GeneticOptions(durations=())


def test_fitness_weights_from_mapping():
    options = GeneticOptions(fitness_weights={"motif": 0.5})
    assert options.fitness_weights.motif == 0.5
    assert options.fitness_weights.gini == FitnessWeights().gini

    with pytest.raises(ValueError, match="Unknown fitness weights: harmony"):
        FitnessWeights.from_mapping({"harmony": 1.0})
    with pytest.raises(ValueError):
        FitnessWeights(gini=-0.1)


def test_seeded_population_uses_whole_vocabulary():
    options = _small_options(population_size=20)
    algorithm = GeneticAlgorithm(options, seed=3)
    algorithm.initialize_population()

    genes = [note for individual in algorithm.population for note in individual.genes]
    assert {note.duration for note in genes} == set(options.durations)
    assert {note.pitch % 12 for note in genes} == set(options.scale)
    assert {len(individual.genes) for individual in algorithm.population} != {8}


def test_numpy_generator_can_drive_search():
    first = GeneticAlgorithm(_small_options(generations=3), rng=np.random.default_rng(12)).evolve()
    second = GeneticAlgorithm(_small_options(generations=3), rng=np.random.default_rng(12)).evolve()
    assert first.genes == second.genes


def test_nan_fitness_everywhere_raises_clear_error():
    algorithm = GeneticAlgorithm(_small_options(generations=2), seed=0)
    algorithm.set_custom_fitness(lambda genes: float("nan"))
    with pytest.raises(ValueError, match="NaN"):
        algorithm.evolve()


def test_nan_fitness_is_skipped_when_tracking_best():
    algorithm = GeneticAlgorithm(_small_options(generations=4), seed=0)
    algorithm.set_custom_fitness(lambda genes: float("nan") if len(genes) % 2 else float(len(genes)))
    best = algorithm.evolve()
    assert len(best.genes) % 2 == 0
    assert best.fitness == len(best.genes)
