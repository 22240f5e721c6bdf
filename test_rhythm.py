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

import warnings

import numpy as np
import pytest

from random_sources import LinearCongruentialRandom
from rhythm import EPSILON, GeneticRhythm, Rhythm, RhythmNote, total_duration


def _assert_valid_rhythm(rhythm, measure_length):
    offsets = [note.offset for note in rhythm]
    assert offsets == sorted(offsets)
    for current, following in zip(rhythm, rhythm[1:]):
        assert current.offset + current.duration <= following.offset + EPSILON
    for note in rhythm:
        assert note.duration > 0
        assert note.offset + note.duration <= measure_length + EPSILON


def test_generated_rhythms_are_valid():
    for seed in range(10):
        optimizer = GeneticRhythm(seed=seed, measure_length=4.0, durations=[0.5, 1.0, 2.0])
        rhythm = optimizer.generate()
        _assert_valid_rhythm(rhythm, 4.0)
        assert total_duration(rhythm) <= 4.0 + EPSILON


def test_most_seeds_fill_the_measure():
    filled = 0
    for seed in range(10):
        optimizer = GeneticRhythm(
            seed=seed,
            population_size=10,
            measure_length=4.0,
            max_generations=50,
            mutation_rate=0.1,
            durations=[0.5, 1.0, 2.0],
        )
        rhythm = optimizer.generate()
        if abs(total_duration(rhythm) - 4.0) <= 0.01:
            filled += 1
    assert filled > 5, f"Only {filled}/10 seeds filled the measure"


def test_same_seed_reproduces_rhythm():
    first = GeneticRhythm(seed=42, measure_length=3.0).generate()
    second = GeneticRhythm(seed=42, measure_length=3.0).generate()
    assert first == second


def test_history_records_every_generation():
    optimizer = GeneticRhythm(seed=1, max_generations=12)
    optimizer.generate()
    assert [entry["generation"] for entry in optimizer.history] == list(range(1, 13))
    for entry in optimizer.history:
        assert 0.0 <= entry["best_cost"] <= entry["mean_cost"]


def test_zero_generations_returns_best_initial_rhythm():
    optimizer = GeneticRhythm(seed=3, max_generations=0)
    best_cost = min(optimizer.evaluate_fitness(r) for r in optimizer.population)
    rhythm = optimizer.generate()
    assert optimizer.evaluate_fitness(rhythm) == best_cost
    assert optimizer.history == []


def test_evaluate_fitness_is_distance_to_measure():
    optimizer = GeneticRhythm(seed=0, measure_length=4.0)
    rhythm = [RhythmNote(1.0, 0.0), RhythmNote(2.0, 1.0)]
    assert optimizer.evaluate_fitness(rhythm) == pytest.approx(1.0)
    assert optimizer.evaluate_fitness([]) == pytest.approx(4.0)


def test_crossover_trims_overflow():
    optimizer = GeneticRhythm(seed=0, measure_length=4.0)
    parent1 = [RhythmNote(2.0, 0.0), RhythmNote(2.0, 2.0)]
    parent2 = [RhythmNote(1.0, 0.0), RhythmNote(2.0, 1.0), RhythmNote(1.0, 3.0)]
    for _ in range(20):
        child = optimizer.crossover(parent1, parent2)
        _assert_valid_rhythm(child, 4.0)
        assert [note.offset for note in child] == [
            sum(n.duration for n in child[:i]) for i in range(len(child))
        ]


def test_mutation_without_fitting_duration_is_a_no_op():
    # Every slot is 1 beat wide; the only allowed duration is 2.
    optimizer = GeneticRhythm(seed=0, measure_length=2.0, mutation_rate=1.0, durations=[2.0])
    rhythm = [RhythmNote(1.0, 0.0), RhythmNote(1.0, 1.0)]
    for _ in range(10):
        assert optimizer.mutate(rhythm) == rhythm


def test_mutation_keeps_notes_inside_their_slot():
    optimizer = GeneticRhythm(seed=2, measure_length=4.0, mutation_rate=1.0)
    rhythm = [RhythmNote(1.0, 0.0), RhythmNote(1.0, 1.0), RhythmNote(2.0, 2.0)]
    for _ in range(20):
        _assert_valid_rhythm(optimizer.mutate(rhythm), 4.0)


def test_constructor_validation():
    with pytest.raises(ValueError):
        GeneticRhythm(population_size=0)
    with pytest.raises(ValueError):
        GeneticRhythm(measure_length=0)
    with pytest.raises(ValueError):
        GeneticRhythm(mutation_rate=1.5)
    with pytest.raises(ValueError):
        GeneticRhythm(durations=[])
    with pytest.raises(ValueError):
        GeneticRhythm(durations=[1.0, -0.5])


def test_random_rhythm_fills_measure():
    rhythm = Rhythm(measure_length=4.0, durations=[0.5, 1.0]).random(seed=9)
    _assert_valid_rhythm(rhythm, 4.0)
    assert total_duration(rhythm) == pytest.approx(4.0)


def test_random_rhythm_warns_when_iterations_run_out():
    rhythm = Rhythm(measure_length=4.0, durations=[3.0])
    with pytest.warns(RuntimeWarning, match="Max iterations reached"):
        result = rhythm.random(seed=1, max_iter=10)
    assert total_duration(result) == pytest.approx(3.0)


def test_random_rhythm_with_rests_leaves_no_warning_when_filled():
    rhythm = Rhythm(measure_length=2.0, durations=[0.5])
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        result = rhythm.random(seed=5, rest_probability=0.3, max_iter=200)
    assert total_duration(result) == pytest.approx(2.0)


def test_darwin_uses_measure_settings():
    rhythm = Rhythm(measure_length=3.0, durations=[0.5, 1.0])
    result = rhythm.darwin(seed=8, max_generations=20)
    _assert_valid_rhythm(result, 3.0)
    assert result == Rhythm(measure_length=3.0, durations=[0.5, 1.0]).darwin(seed=8, max_generations=20)


def test_rhythm_front_end_accepts_injected_sources():
    rhythm = Rhythm(measure_length=4.0, durations=[0.5, 1.0, 2.0])

    drawn = rhythm.random(rng=np.random.default_rng(2))
    _assert_valid_rhythm(drawn, 4.0)

    evolved = rhythm.darwin(rng=LinearCongruentialRandom(6), max_generations=10)
    assert evolved == rhythm.darwin(seed=6, max_generations=10)


def test_seeded_tournament_reaches_whole_population():
    optimizer = GeneticRhythm(seed=3, population_size=10)
    picks = {optimizer.rng.randrange(optimizer.population_size) for _ in range(1000)}
    assert picks == set(range(10))

    optimizer = GeneticRhythm(seed=3, measure_length=8.0, durations=[0.5, 1.0])
    durations = {note.duration for candidate in optimizer.population for note in candidate}
    assert durations == {0.5, 1.0}
