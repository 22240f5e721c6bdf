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
Stationary covariance kernels for Gaussian process regression.

Every kernel is a function of the Euclidean distance between two points, so
the variants only differ in how a distance is turned into a covariance. The
scalar ``compute`` and the batched call share that mapping.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import numpy as np
from scipy.spatial.distance import cdist

from matrix import ArrayLike, Matrix, ensure_2d


def euclidean_distance(x1, x2) -> float:
    diff = np.asarray(x1, dtype=np.float64) - np.asarray(x2, dtype=np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


class Kernel(ABC):
    """
    Base class for distance-based covariance functions.

    Hyperparameters live in a name -> value map. Subclasses list the names
    they accept in ``param_names``; ``set_params`` merges new values into the
    map and rejects unknown names or non-positive values.
    """

    param_names = ("length_scale", "variance")

    def __init__(self, **params: float):
        self._params: Dict[str, float] = {}
        self.set_params(**params)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def get_params(self) -> Dict[str, float]:
        return dict(self._params)

    def set_params(self, **params: float) -> None:
        for name, value in params.items():
            if name not in self.param_names:
                raise ValueError(
                    f"Unknown parameter '{name}' for {type(self).__name__}; "
                    f"expected one of {', '.join(self.param_names)}"
                )
            value = float(value)
            if not value > 0.0:
                raise ValueError(f"Kernel parameter '{name}' must be positive, got {value}")
            self._params[name] = value

    @property
    def length_scale(self) -> float:
        return self._params["length_scale"]

    @property
    def variance(self) -> float:
        return self._params["variance"]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    @abstractmethod
    def _covariance(self, distance: np.ndarray) -> np.ndarray:
        """Map Euclidean distances to covariances, elementwise."""

    def compute(self, x1, x2) -> float:
        """Covariance between two points."""
        distance = np.asarray(euclidean_distance(x1, x2))
        return float(self._covariance(distance))

    def __call__(self, X1: ArrayLike, X2: Optional[ArrayLike] = None) -> Matrix:
        """
        Pairwise covariance matrix.

        Args:
            X1: Points as rows (a flat vector is treated as one point per entry).
            X2: Second point set; defaults to ``X1``.

        Returns:
            Matrix of shape ``(len(X1), len(X2))``.
        """
        A = ensure_2d(X1)
        B = A if X2 is None else ensure_2d(X2)
        if A.columns != B.columns:
            raise ValueError(
                f"Point dimensions differ: {A.columns} vs {B.columns}"
            )
        if A.rows == 0 or B.rows == 0:
            return Matrix.zeros(A.rows, B.rows)
        distances = cdist(A.data, B.data, metric="euclidean")
        return Matrix.from_array(self._covariance(distances))

    def __repr__(self) -> str:
        params = ", ".join(f"{name}={value:g}" for name, value in self._params.items())
        return f"{type(self).__name__}({params})"


class RBF(Kernel):
    """Squared-exponential kernel: ``variance * exp(-0.5 * (d / length_scale)**2)``."""

    param_names = ("length_scale", "variance")

    def __init__(self, length_scale: float = 1.0, variance: float = 1.0):
        super().__init__(length_scale=length_scale, variance=variance)

    def _covariance(self, distance):
        return self.variance * np.exp(-0.5 * (distance / self.length_scale) ** 2)


class RationalQuadratic(Kernel):
    """
    Scale mixture of RBF kernels.

    ``variance * (1 + d**2 / (2 * alpha * length_scale**2)) ** -alpha``
    """

    param_names = ("length_scale", "alpha", "variance")

    def __init__(self, length_scale: float = 1.0, alpha: float = 1.0, variance: float = 1.0):
        super().__init__(length_scale=length_scale, alpha=alpha, variance=variance)

    @property
    def alpha(self) -> float:
        return self._params["alpha"]

    def _covariance(self, distance):
        base = 1.0 + distance ** 2 / (2.0 * self.alpha * self.length_scale ** 2)
        return self.variance * np.power(base, -self.alpha)


class Periodic(Kernel):
    """Exp-sine-squared kernel, repeating every ``periodicity`` units."""

    param_names = ("length_scale", "periodicity", "variance")

    def __init__(self, length_scale: float = 1.0, periodicity: float = 1.0, variance: float = 1.0):
        super().__init__(length_scale=length_scale, periodicity=periodicity, variance=variance)

    @property
    def periodicity(self) -> float:
        return self._params["periodicity"]

    def _covariance(self, distance):
        sin_term = np.sin(np.pi * distance / self.periodicity)
        return self.variance * np.exp(-2.0 * (sin_term / self.length_scale) ** 2)
