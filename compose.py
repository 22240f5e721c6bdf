#!/usr/bin/env python3
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
Command-line front end: generate material and write it as a JMON composition.

Modes:
    gp      Melody from a Gaussian process posterior sample through anchor pitches
    rhythm  Rhythm evolved to fill one measure
    phrase  Phrase evolved by the genetic algorithm

Usage:
    python compose.py --mode gp --anchors 60 64 67 65 62 --length 16
    python compose.py --mode rhythm --measure-length 4 --durations 0.5 1 2 --seed 7
    python compose.py --mode phrase --generations 50 --output phrase.json
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from gaussian_process import GaussianProcessRegressor
from genetic import GeneticAlgorithm, GeneticOptions
from jmon import create_composition, notes_to_sequence, pitches_to_notes, rhythm_to_sequence, save_composition
from kernels import RBF, Kernel, Periodic, RationalQuadratic
from rhythm import GeneticRhythm

logger = logging.getLogger(__name__)

SCALES: Dict[str, Sequence[int]] = {
    "major": (0, 2, 4, 5, 7, 9, 11),
    "minor": (0, 2, 3, 5, 7, 8, 10),
    "dorian": (0, 2, 3, 5, 7, 9, 10),
    "mixolydian": (0, 2, 4, 5, 7, 9, 10),
    "pentatonic": (0, 2, 4, 7, 9),
    "blues": (0, 3, 5, 6, 7, 10),
    "chromatic": tuple(range(12)),
}


def build_kernel(name: str, length_scale: float, variance: float, periodicity: float) -> Kernel:
    if name == "rbf":
        return RBF(length_scale=length_scale, variance=variance)
    if name == "rational-quadratic":
        return RationalQuadratic(length_scale=length_scale, variance=variance)
    if name == "periodic":
        return Periodic(length_scale=length_scale, periodicity=periodicity, variance=variance)
    raise ValueError(f"Unknown kernel '{name}'")


def snap_to_scale(pitches: Sequence[float], scale: Sequence[int], tonic: int = 0) -> List[int]:
    """Round each pitch to the nearest MIDI note whose pitch class is in ``scale``."""
    allowed = np.array([p for p in range(128) if (p - tonic) % 12 in scale])
    return [int(allowed[np.argmin(np.abs(allowed - pitch))]) for pitch in pitches]


def generate_gp_melody(
    anchors: Sequence[float],
    length: int,
    kernel: Kernel,
    scale: Sequence[int],
    alpha: float = 1e-6,
    seed: Optional[int] = None,
) -> List[int]:
    """
    Spread the anchor pitches evenly over ``length`` steps, fit a GP to them
    (centred on their mean) and draw one posterior sample per step.
    """
    if len(anchors) < 1:
        raise ValueError("At least one anchor pitch is required")
    if length < 1:
        raise ValueError("length must be >= 1")

    anchors = np.asarray(anchors, dtype=np.float64)
    offset = anchors.mean()
    anchor_positions = np.linspace(0.0, length - 1, num=anchors.size)

    regressor = GaussianProcessRegressor(kernel, alpha=alpha, seed=seed)
    regressor.fit(anchor_positions, anchors - offset)
    logger.info("Log marginal likelihood: %.3f", regressor.log_marginal_likelihood())

    curve = regressor.sample_y(np.arange(length, dtype=np.float64), n_samples=1)[0] + offset
    return snap_to_scale(curve, scale)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the composition script."""
    parser = argparse.ArgumentParser(
        description="Generate melodies, rhythms and phrases and export them as JMON"
    )
    parser.add_argument(
        "--mode",
        choices=("gp", "rhythm", "phrase"),
        default="gp",
        help="What to generate (default: gp)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("composition.json"),
        help="Output JMON file (default: composition.json)"
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible output")
    parser.add_argument("--bpm", type=float, default=120.0, help="Tempo (default: 120)")
    parser.add_argument(
        "--scale",
        choices=sorted(SCALES),
        default="major",
        help="Scale used for pitches (default: major)"
    )
    parser.add_argument("--verbose", action="store_true", help="Log per-generation progress")

    gp_group = parser.add_argument_group("gp mode")
    gp_group.add_argument(
        "--anchors",
        type=float,
        nargs="+",
        default=[60, 64, 67, 65, 62, 60],
        help="Anchor pitches the melody passes near"
    )
    gp_group.add_argument("--length", type=int, default=16, help="Number of notes (default: 16)")
    gp_group.add_argument(
        "--kernel",
        choices=("rbf", "rational-quadratic", "periodic"),
        default="rbf",
        help="Covariance kernel (default: rbf)"
    )
    gp_group.add_argument("--length-scale", type=float, default=2.0, help="Kernel length scale (default: 2.0)")
    gp_group.add_argument("--variance", type=float, default=4.0, help="Kernel variance (default: 4.0)")
    gp_group.add_argument("--periodicity", type=float, default=8.0, help="Periodic kernel period (default: 8.0)")
    gp_group.add_argument("--note-duration", type=float, default=0.5, help="Beats per note (default: 0.5)")

    rhythm_group = parser.add_argument_group("rhythm mode")
    rhythm_group.add_argument("--measure-length", type=float, default=4.0, help="Beats per measure (default: 4)")
    rhythm_group.add_argument(
        "--durations",
        type=float,
        nargs="+",
        default=[0.5, 1.0, 2.0],
        help="Allowed durations in beats (default: 0.5 1 2)"
    )

    evolution_group = parser.add_argument_group("rhythm and phrase modes")
    evolution_group.add_argument("--population-size", type=int, default=None, help="Population size")
    evolution_group.add_argument("--generations", type=int, default=None, help="Number of generations")
    evolution_group.add_argument("--mutation-rate", type=float, default=None, help="Mutation probability")
    evolution_group.add_argument(
        "--length-range",
        type=int,
        nargs=2,
        default=[8, 16],
        metavar=("MIN", "MAX"),
        help="Phrase length bounds (default: 8 16)"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    scale = SCALES[args.scale]

    try:
        if args.mode == "gp":
            kernel = build_kernel(args.kernel, args.length_scale, args.variance, args.periodicity)
            logger.info(f"Sampling {args.length} notes from a GP with {kernel!r}")
            pitches = generate_gp_melody(args.anchors, args.length, kernel, scale, seed=args.seed)
            sequence = notes_to_sequence(
                pitches_to_notes(pitches, durations=args.note_duration),
                label="GP Melody",
            )

        elif args.mode == "rhythm":
            optimizer = GeneticRhythm(
                seed=args.seed,
                population_size=args.population_size or 10,
                measure_length=args.measure_length,
                max_generations=args.generations if args.generations is not None else 50,
                mutation_rate=args.mutation_rate if args.mutation_rate is not None else 0.1,
                durations=args.durations,
            )
            rhythm = optimizer.generate()
            logger.info(
                f"Evolved rhythm with {len(rhythm)} notes, cost {optimizer.evaluate_fitness(rhythm):.3f}"
            )
            sequence = rhythm_to_sequence(rhythm, label="Evolved Rhythm")

        else:
            options = GeneticOptions(
                population_size=args.population_size or 50,
                generations=args.generations if args.generations is not None else 100,
                mutation_rate=args.mutation_rate if args.mutation_rate is not None else 0.1,
                scale=scale,
                length_range=tuple(args.length_range),
            )
            algorithm = GeneticAlgorithm(options, seed=args.seed)
            best = algorithm.evolve()
            logger.info(f"Evolved phrase with {len(best.genes)} notes, fitness {best.fitness:.4f}")
            sequence = notes_to_sequence(best.genes, label="Evolved Phrase")

        composition = create_composition(
            [sequence],
            bpm=args.bpm,
            metadata={"name": f"{args.mode} composition", "seed": args.seed},
        )
        save_composition(composition, args.output)
        return 0

    except Exception as e:
        logger.error(f"Generation failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    exit(main())
