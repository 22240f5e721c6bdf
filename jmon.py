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
Conversion of generated material to and from JMON compositions.

JMON is a JSON description of a piece: a list of sequences, each holding
notes with a pitch, a ``bars:beats:ticks`` start time, a note-value duration
(``"4n"``, ``"8n."``...) and a velocity in ``[0, 1]``. Internally everything
is measured in beats (quarter notes).
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

JMON_FORMAT = "jmonTone"
JMON_VERSION = "1.0"
TICKS_PER_BEAT = 480
DEFAULT_VELOCITY = 0.8

NOTE_VALUES: Dict[str, float] = {
    "1n": 4.0,
    "2n.": 3.0,
    "2n": 2.0,
    "4n.": 1.5,
    "4n": 1.0,
    "8n.": 0.75,
    "8n": 0.5,
    "16n": 0.25,
    "32n": 0.125,
}

_NOTE_VALUE_PATTERN = re.compile(r"^(\d+)n(\.?)$")
_MUSICAL_TIME_PATTERN = re.compile(r"^\s*(\d+):(\d+(?:\.\d+)?):(\d+(?:\.\d+)?)\s*$")


@dataclass
class Note:
    """A note measured in beats: the shape every generator exchanges."""

    pitch: Optional[float]
    time: float
    duration: float
    velocity: float = DEFAULT_VELOCITY

    def copy(self) -> "Note":
        return Note(self.pitch, self.time, self.duration, self.velocity)


# ----------------------------------------------------------------------
# Time and duration vocabulary
# ----------------------------------------------------------------------

def time_to_musical_time(time: float, time_signature: Tuple[int, int] = (4, 4)) -> str:
    """Convert a time in beats to ``bars:beats:ticks``."""
    beats_per_bar = time_signature[0]
    total_ticks = int(round(time * TICKS_PER_BEAT))
    ticks_per_bar = beats_per_bar * TICKS_PER_BEAT
    bars, remainder = divmod(total_ticks, ticks_per_bar)
    beats, ticks = divmod(remainder, TICKS_PER_BEAT)
    return f"{bars}:{beats}:{ticks}"


def musical_time_to_time(value: str, time_signature: Tuple[int, int] = (4, 4)) -> float:
    """Inverse of ``time_to_musical_time``."""
    match = _MUSICAL_TIME_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid musical time '{value}'; expected bars:beats:ticks")
    bars, beats, ticks = (float(group) for group in match.groups())
    return bars * time_signature[0] + beats + ticks / TICKS_PER_BEAT


def duration_to_note_value(duration: float) -> str:
    """Closest note value for a duration in beats."""
    return min(NOTE_VALUES, key=lambda name: abs(NOTE_VALUES[name] - duration))


def note_value_to_beats(value: Union[str, float, int]) -> float:
    """
    Duration in beats for a note value such as ``"4n"`` or ``"8n."``.

    Numbers pass through unchanged.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported duration {value!r}")
    if value in NOTE_VALUES:
        return NOTE_VALUES[value]
    match = _NOTE_VALUE_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Unknown note value '{value}'")
    division = int(match.group(1))
    if division <= 0:
        raise ValueError(f"Unknown note value '{value}'")
    beats = 4.0 / division
    if match.group(2):
        beats *= 1.5
    return beats


# ----------------------------------------------------------------------
# Building documents
# ----------------------------------------------------------------------

def _json_pitch(pitch: Optional[float]) -> Optional[Union[int, float]]:
    if pitch is None:
        return None
    pitch = float(pitch)
    return int(pitch) if pitch.is_integer() else pitch


def note_to_jmon(note: Note, time_signature: Tuple[int, int] = (4, 4)) -> Dict[str, Any]:
    return {
        "note": _json_pitch(note.pitch),
        "time": time_to_musical_time(note.time, time_signature),
        "duration": duration_to_note_value(note.duration),
        "velocity": float(note.velocity),
    }


def notes_to_sequence(
    notes: Sequence[Note],
    label: str = "Generated Sequence",
    time_signature: Tuple[int, int] = (4, 4),
) -> Dict[str, Any]:
    return {
        "label": label,
        "notes": [note_to_jmon(note, time_signature) for note in notes],
        "synth": {
            "type": "Synth",
            "options": {
                "oscillator": {"type": "triangle"},
                "envelope": {"attack": 0.02, "decay": 0.1, "sustain": 0.3, "release": 1},
            },
        },
    }


def pitches_to_notes(
    pitches: Sequence[Optional[float]],
    durations: Union[float, Sequence[float]] = 1.0,
    velocity: float = DEFAULT_VELOCITY,
) -> List[Note]:
    """Lay pitches end to end; ``durations`` cycles when shorter than ``pitches``."""
    if isinstance(durations, (int, float)):
        durations = [float(durations)]
    if not durations:
        raise ValueError("durations cannot be empty")

    notes = []
    time = 0.0
    for index, pitch in enumerate(pitches):
        duration = float(durations[index % len(durations)])
        notes.append(Note(pitch=pitch, time=time, duration=duration, velocity=velocity))
        time += duration
    return notes


def rhythm_to_sequence(
    rhythm: Sequence[Any],
    pitches: Sequence[float] = (60,),
    label: str = "Rhythm Pattern",
    accent_every: int = 4,
) -> Dict[str, Any]:
    """
    Turn ``duration``/``offset`` rhythm notes into a JMON sequence.

    Pitches cycle over the notes; every ``accent_every``-th note (and the
    first) is accented.
    """
    if not pitches:
        raise ValueError("pitches cannot be empty")
    notes = []
    for index, item in enumerate(rhythm):
        if item.duration <= 0:
            continue
        accented = index % accent_every == 0
        notes.append(
            Note(
                pitch=pitches[index % len(pitches)],
                time=item.offset,
                duration=item.duration,
                velocity=0.9 if accented else 0.7,
            )
        )
    sequence = notes_to_sequence(notes, label=label)
    sequence["synth"] = {
        "type": "Synth",
        "options": {
            "oscillator": {"type": "sawtooth"},
            "envelope": {"attack": 0.01, "decay": 0.1, "sustain": 0.5, "release": 0.3},
        },
    }
    return sequence


def create_composition(
    sequences: Sequence[Dict[str, Any]],
    bpm: float = 120,
    *,
    key_signature: str = "C",
    time_signature: str = "4/4",
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if bpm <= 0:
        raise ValueError("bpm must be positive")
    composition = {
        "format": JMON_FORMAT,
        "version": JMON_VERSION,
        "bpm": bpm,
        "keySignature": key_signature,
        "timeSignature": time_signature,
        "audioGraph": [{"id": "master", "type": "Destination", "options": {}}],
        "connections": [],
        "sequences": list(sequences),
    }
    if metadata:
        composition["metadata"] = dict(metadata)
    return composition


# ----------------------------------------------------------------------
# Reading documents back
# ----------------------------------------------------------------------

def sequence_to_notes(sequence: Dict[str, Any], time_signature: Tuple[int, int] = (4, 4)) -> List[Note]:
    """Decode a JMON sequence into beat-based notes."""
    notes = []
    for raw in sequence.get("notes", []):
        time = raw.get("time", 0.0)
        if isinstance(time, str):
            time = musical_time_to_time(time, time_signature)
        notes.append(
            Note(
                pitch=raw.get("note"),
                time=float(time),
                duration=note_value_to_beats(raw.get("duration", "4n")),
                velocity=float(raw.get("velocity", DEFAULT_VELOCITY)),
            )
        )
    return notes


def save_composition(composition: Dict[str, Any], filepath: Union[str, Path]) -> Path:
    filepath = Path(filepath)
    if filepath.suffix != ".json":
        filepath = filepath.with_suffix(".json")
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(json.dumps(composition, indent=2), encoding="utf-8")
    logger.info("Composition saved: %s", filepath)
    return filepath


def load_composition(filepath: Union[str, Path]) -> Dict[str, Any]:
    filepath = Path(filepath)
    composition = json.loads(filepath.read_text(encoding="utf-8"))
    if composition.get("format") != JMON_FORMAT:
        raise ValueError(
            f"Unsupported composition format {composition.get('format')!r}; expected {JMON_FORMAT!r}"
        )
    return composition
