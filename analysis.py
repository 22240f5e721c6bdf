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
Statistical descriptors of note sequences.

All metrics are pure functions of their inputs. ``MusicalAnalysis.analyze``
bundles them into one dict and is what the phrase optimizer scores against.
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from jmon import musical_time_to_time

MAJOR_SCALE = (0, 2, 4, 5, 7, 9, 11)
DEFAULT_PITCH = 60


def _note_field(note: Any, *names: str) -> Any:
    for name in names:
        if isinstance(note, Mapping):
            if name in note:
                return note[name]
        elif hasattr(note, name):
            return getattr(note, name)
    return None


def note_pitch(note: Any) -> float:
    """MIDI pitch of a note object or JMON-style mapping (``pitch`` or ``note``)."""
    value = _note_field(note, "pitch", "note")
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    return float(DEFAULT_PITCH)


def note_onset(note: Any) -> float:
    """Onset in beats; JMON ``bars:beats:ticks`` strings are decoded in 4/4."""
    value = _note_field(note, "time", "offset")
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    if isinstance(value, str):
        try:
            return musical_time_to_time(value)
        except ValueError:
            return 0.0
    return 0.0


class MusicalAnalysis:
    """Collection of sequence metrics; all methods are static."""

    @staticmethod
    def gini(values: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
        """Weighted Gini coefficient: 0 for perfect equality."""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return 0.0
        if weights is None:
            weights = np.ones_like(values)
        else:
            weights = np.asarray(weights, dtype=np.float64)

        order = np.argsort(values, kind="stable")
        v = values[order]
        w = weights[order]
        total_weight = w.sum()
        cumulative = np.cumsum(w)

        numerator = np.sum(w * (2.0 * cumulative - w - total_weight) * v)
        denominator = np.sum(w * v * total_weight)
        return 0.0 if denominator == 0 else float(numerator / denominator)

    @staticmethod
    def balance(values: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
        """Weighted centre of mass."""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return 0.0
        w = np.ones_like(values) if weights is None else np.asarray(weights, dtype=np.float64)
        total_weight = w.sum()
        return 0.0 if total_weight == 0 else float(np.dot(values, w) / total_weight)

    @staticmethod
    def autocorrelation(values: Sequence[float], max_lag: Optional[int] = None) -> List[float]:
        values = np.asarray(values, dtype=np.float64)
        n = values.size
        if n == 0:
            return []
        lag = n // 2 if max_lag is None else min(max_lag, n - 1)
        centred = values - values.mean()
        variance = float(np.mean(centred ** 2))

        result = []
        for k in range(lag + 1):
            covariance = float(np.dot(centred[: n - k], centred[k:])) / (n - k)
            result.append(0.0 if variance == 0 else covariance / variance)
        return result

    @staticmethod
    def motif(values: Sequence[float], pattern_length: int = 3) -> float:
        """
        Repetition score: occurrences of the most common pattern divided by
        the number of distinct patterns of ``pattern_length`` values.
        """
        values = list(values)
        if len(values) < pattern_length * 2:
            return 0.0
        patterns = Counter(
            tuple(values[i:i + pattern_length])
            for i in range(len(values) - pattern_length + 1)
        )
        return max(patterns.values()) / len(patterns)

    @staticmethod
    def dissonance(pitches: Sequence[float], scale: Sequence[int] = MAJOR_SCALE) -> float:
        """Fraction of pitches whose pitch class falls outside ``scale``."""
        pitches = np.asarray(pitches, dtype=np.float64)
        if pitches.size == 0:
            return 0.0
        pitch_classes = np.mod(np.round(pitches).astype(int), 12)
        conforming = np.isin(pitch_classes, np.asarray(scale, dtype=int)).sum()
        return float(1.0 - conforming / pitches.size)

    @staticmethod
    def rhythmic(onsets: Sequence[float], grid_division: int = 16, tolerance: float = 0.1) -> float:
        """Fraction of onsets within ``tolerance`` grid cells of a 1/grid_division grid."""
        onsets = np.asarray(onsets, dtype=np.float64)
        if onsets.size == 0:
            return 0.0
        positions = onsets * grid_division
        deviation = np.abs(positions - np.round(positions))
        return float(np.mean(deviation <= tolerance))

    @staticmethod
    def fibonacci_index(values: Sequence[float]) -> float:
        """Closeness of consecutive ratios to the golden ratio, averaged."""
        values = np.asarray(values, dtype=np.float64)
        if values.size < 2:
            return 0.0
        golden_ratio = (1.0 + np.sqrt(5.0)) / 2.0
        previous, current = values[:-1], values[1:]
        mask = previous != 0
        ratios = current[mask] / previous[mask]
        score = np.sum(1.0 / (1.0 + np.abs(ratios - golden_ratio)))
        return float(score / (values.size - 1))

    @staticmethod
    def syncopation(onsets: Sequence[float], beat_division: int = 4) -> float:
        onsets = np.asarray(onsets, dtype=np.float64)
        if onsets.size == 0:
            return 0.0
        position = np.mod(onsets * beat_division, 1.0)
        off_beat = (position > 0.2) & (position < 0.8) & (np.abs(position - 0.5) > 0.2)
        return float(np.mean(off_beat))

    @staticmethod
    def contour_entropy(pitches: Sequence[float]) -> float:
        """Shannon entropy (bits) of the up/down/same melodic direction sequence."""
        pitches = np.asarray(pitches, dtype=np.float64)
        if pitches.size < 2:
            return 0.0
        directions = np.sign(np.diff(pitches))
        _, counts = np.unique(directions, return_counts=True)
        probabilities = counts / counts.sum()
        return float(-np.sum(probabilities * np.log2(probabilities)))

    @staticmethod
    def interval_variance(pitches: Sequence[float]) -> float:
        pitches = np.asarray(pitches, dtype=np.float64)
        if pitches.size < 2:
            return 0.0
        return float(np.var(np.abs(np.diff(pitches))))

    @staticmethod
    def density(onsets: Sequence[float], time_window: float = 1.0) -> float:
        """Notes per ``time_window`` beats across the span of the onsets."""
        onsets = np.asarray(onsets, dtype=np.float64)
        if onsets.size == 0:
            return 0.0
        span = float(onsets.max() - onsets.min()) or 1.0
        return float(onsets.size / (span / time_window))

    @staticmethod
    def gap_variance(onsets: Sequence[float]) -> float:
        onsets = np.asarray(onsets, dtype=np.float64)
        if onsets.size < 2:
            return 0.0
        return float(np.var(np.diff(onsets)))

    @classmethod
    def analyze(cls, notes: Iterable[Any], scale: Sequence[int] = MAJOR_SCALE) -> Dict[str, float]:
        """
        Compute every metric for a note sequence.

        Args:
            notes: ``Note`` objects or mappings with ``pitch``/``note`` and ``time``.
            scale: Pitch classes considered consonant.

        Returns:
            Dict with ``gini``, ``balance``, ``motif``, ``dissonance``,
            ``rhythmic`` and the secondary descriptors.
        """
        notes = list(notes)
        pitches = [note_pitch(note) for note in notes]
        onsets = [note_onset(note) for note in notes]

        return {
            "gini": cls.gini(pitches),
            "balance": cls.balance(pitches),
            "motif": cls.motif(pitches),
            "dissonance": cls.dissonance(pitches, scale),
            "rhythmic": cls.rhythmic(onsets),
            "fibonacci_index": cls.fibonacci_index(pitches),
            "syncopation": cls.syncopation(onsets),
            "contour_entropy": cls.contour_entropy(pitches),
            "interval_variance": cls.interval_variance(pitches),
            "density": cls.density(onsets),
            "gap_variance": cls.gap_variance(onsets),
        }
