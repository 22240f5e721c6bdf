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

import pytest

from compose import SCALES, build_kernel, generate_gp_melody, main, snap_to_scale
from jmon import load_composition, sequence_to_notes
from kernels import Periodic, RBF


def test_snap_to_scale():
    assert snap_to_scale([60.2, 61.4, 65.9, 70.6], SCALES["major"]) == [60, 62, 65, 71]
    assert snap_to_scale([61.0], SCALES["chromatic"]) == [61]


def test_build_kernel():
    assert isinstance(build_kernel("rbf", 2.0, 1.0, 4.0), RBF)
    periodic = build_kernel("periodic", 1.0, 1.0, 4.0)
    assert isinstance(periodic, Periodic)
    assert periodic.periodicity == 4.0
    with pytest.raises(ValueError):
        build_kernel("matern", 1.0, 1.0, 1.0)


def test_gp_melody_passes_near_anchors():
    anchors = [60, 64, 67, 65, 62]
    melody = generate_gp_melody(anchors, 9, RBF(length_scale=1.5, variance=4.0), SCALES["major"], seed=3)
    assert len(melody) == 9
    assert all(pitch % 12 in SCALES["major"] for pitch in melody)
    # Anchors sit on positions 0, 2, 4, 6 and 8.
    for anchor, pitch in zip(anchors, melody[::2]):
        assert abs(pitch - anchor) <= 2


@pytest.mark.parametrize("mode", ["gp", "rhythm", "phrase"])
def test_cli_writes_composition(tmp_path, mode):
    output = tmp_path / f"{mode}.json"
    argv = ["--mode", mode, "--output", str(output), "--seed", "5"]
    if mode == "phrase":
        argv += ["--population-size", "10", "--generations", "5"]
    assert main(argv) == 0

    composition = load_composition(output)
    notes = sequence_to_notes(composition["sequences"][0])
    assert notes
    assert composition["metadata"]["seed"] == 5


def test_cli_reports_failure(tmp_path):
    output = tmp_path / "bad.json"
    assert main(["--mode", "gp", "--length", "0", "--output", str(output)]) == 1
    assert not output.exists()
