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
Gaussian process regression for melody and control-curve generation.

``GaussianProcessRegressor.fit`` factors the training covariance once and
stores the result as an immutable ``FittedModel``. Prediction, posterior
sampling and the log marginal likelihood are computed from that fitted
state; asking for any of them before ``fit`` raises ``ValueError``.

The prior mean is zero. Centre the targets beforehand when the data carries
a trend.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy.linalg import LinAlgError

from kernels import RBF, Kernel
from matrix import (
    ArrayLike,
    Matrix,
    cholesky_decomposition,
    ensure_2d,
    forward_substitution,
    solve_cholesky,
)
from random_sources import resolve_numpy_rng

logger = logging.getLogger(__name__)


class GaussianProcessFitError(LinAlgError):
    """Raised when the training covariance cannot be factorised."""


@dataclass
class PredictionResult:
    """Posterior mean and, when requested, standard deviation per test point."""

    mean: np.ndarray
    std: Optional[np.ndarray] = None


@dataclass(frozen=True)
class FittedModel:
    """
    Everything a fitted regressor knows about its training data.

    Attributes:
        X_train: Training inputs, one point per row.
        y_train: Training targets.
        L: Lower Cholesky factor of ``K(X_train, X_train) + alpha * I``.
        alpha_vector: ``(K + alpha * I)^-1 y_train``.
    """

    X_train: Matrix
    y_train: np.ndarray
    L: Matrix
    alpha_vector: np.ndarray

    @property
    def n_train(self) -> int:
        return self.X_train.rows

    def predict(self, kernel: Kernel, X_test: Matrix, return_std: bool = False) -> PredictionResult:
        K_star = kernel(self.X_train, X_test)
        mean = K_star.data.T @ self.alpha_vector

        result = PredictionResult(mean=mean)
        if return_std:
            result.std = self._posterior_std(kernel, X_test, K_star)
        return result

    def _posterior_std(self, kernel: Kernel, X_test: Matrix, K_star: Matrix) -> np.ndarray:
        std = np.empty(X_test.rows, dtype=np.float64)
        for i in range(X_test.rows):
            point = X_test.get_row(i)
            k_star_star = kernel.compute(point, point)
            v = forward_substitution(self.L, K_star.get_column(i))
            variance = k_star_star - float(np.dot(v, v))
            # Rounding can push tiny variances below zero.
            std[i] = np.sqrt(max(0.0, variance))
        return std

    def log_marginal_likelihood(self) -> float:
        n = self.y_train.shape[0]
        data_fit = -0.5 * float(np.dot(self.y_train, self.alpha_vector))
        complexity = -float(np.sum(np.log(self.L.diagonal())))
        return data_fit + complexity - 0.5 * n * np.log(2.0 * np.pi)


class GaussianProcessRegressor:
    """
    Zero-mean Gaussian process regressor.

    The kernel is shared, not copied: changing its parameters after ``fit``
    affects later predictions but not the stored Cholesky factor. Call
    ``fit`` again to refresh it.

    Not thread-safe; ``fit`` replaces the fitted state wholesale.
    """

    def __init__(
        self,
        kernel: Kernel,
        alpha: float = 1e-10,
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        """
        Args:
            kernel: Covariance function.
            alpha: Value added to the diagonal of the training covariance
                (observation noise / jitter). Zero is honoured.
            rng: Generator used by ``sample_y``.
            seed: Seed for a fresh generator when ``rng`` is not given.
        """
        if alpha < 0:
            raise ValueError("alpha must be >= 0")
        self.kernel = kernel
        self.alpha = float(alpha)
        self._rng = resolve_numpy_rng(rng, seed)
        self._fitted: Optional[FittedModel] = None

    # ------------------------------------------------------------------
    # Fitted state
    # ------------------------------------------------------------------

    @property
    def is_fitted(self) -> bool:
        return self._fitted is not None

    @property
    def fitted_model(self) -> FittedModel:
        return self._require_fitted("accessing the fitted model")

    @property
    def X_train(self) -> Optional[Matrix]:
        return None if self._fitted is None else self._fitted.X_train.clone()

    @property
    def y_train(self) -> Optional[np.ndarray]:
        return None if self._fitted is None else self._fitted.y_train.copy()

    @property
    def L(self) -> Optional[Matrix]:
        return None if self._fitted is None else self._fitted.L.clone()

    @property
    def alpha_vector(self) -> Optional[np.ndarray]:
        return None if self._fitted is None else self._fitted.alpha_vector.copy()

    def _require_fitted(self, action: str) -> FittedModel:
        if self._fitted is None:
            raise ValueError(f"Model must be fitted before {action}")
        return self._fitted

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fit(self, X: ArrayLike, y: Sequence[float]) -> "GaussianProcessRegressor":
        """
        Condition the process on training data.

        Args:
            X: Training inputs; a flat vector is read as one 1-D point per entry.
            y: Training targets, one per input point.

        Returns:
            self

        Raises:
            ValueError: If ``X`` and ``y`` disagree in length.
            GaussianProcessFitError: If the covariance is not positive definite.
        """
        X_train = ensure_2d(X)
        y_train = np.array(y, dtype=np.float64).reshape(-1)
        if X_train.rows != y_train.shape[0]:
            raise ValueError(
                f"X has {X_train.rows} points but y has {y_train.shape[0]} targets"
            )

        K = self.kernel(X_train)
        K.add_to_diagonal(self.alpha)

        try:
            L = cholesky_decomposition(K)
        except LinAlgError as exc:
            raise GaussianProcessFitError(
                f"Failed to compute Cholesky decomposition: {exc}"
            ) from exc

        alpha_vector = solve_cholesky(L, y_train)
        self._fitted = FittedModel(
            X_train=X_train,
            y_train=y_train,
            L=L,
            alpha_vector=alpha_vector,
        )
        logger.debug(
            "Fitted GP on %d points with %r (alpha=%g)", X_train.rows, self.kernel, self.alpha
        )
        return self

    def predict(self, X: ArrayLike, return_std: bool = False) -> PredictionResult:
        """Posterior mean (and optionally standard deviation) at ``X``."""
        fitted = self._require_fitted("prediction")
        return fitted.predict(self.kernel, ensure_2d(X), return_std=return_std)

    def sample_y(self, X: ArrayLike, n_samples: int = 1) -> np.ndarray:
        """
        Draw independent posterior samples at each test point.

        Each value is ``mean + std * z`` with ``z`` standard normal, drawn
        independently per point (marginal draws, no cross-point correlation).

        Returns:
            Array of shape ``(n_samples, n_points)``.
        """
        fitted = self._require_fitted("sampling")
        if n_samples < 0:
            raise ValueError("n_samples must be >= 0")
        X_test = ensure_2d(X)
        prediction = fitted.predict(self.kernel, X_test, return_std=True)

        z = self._rng.standard_normal((n_samples, X_test.rows))
        return prediction.mean[None, :] + prediction.std[None, :] * z

    def log_marginal_likelihood(self) -> float:
        """Log evidence of the training targets under the fitted model."""
        fitted = self._require_fitted("computing log marginal likelihood")
        return fitted.log_marginal_likelihood()


class KernelGenerator:
    """
    Draw smooth random curves from a zero-mean RBF Gaussian process prior.

    Useful for pitch contours, velocity curves and other control signals.
    With ``walk_around`` enabled and stored data, the curve hugs the data:
    each of the first ``len(data)`` points becomes ``data[i] + 0.1 * sample[i]``.
    """

    def __init__(
        self,
        data: Optional[Sequence[float]] = None,
        length_scale: float = 1.0,
        amplitude: float = 1.0,
        noise_level: float = 0.1,
        walk_around: bool = False,
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        self._data = np.array(data if data is not None else [], dtype=np.float64)
        self.length_scale = length_scale
        self.amplitude = amplitude
        self.noise_level = noise_level
        self.walk_around = walk_around
        self._rng = resolve_numpy_rng(rng, seed)

    def set_data(self, data: Sequence[float]) -> None:
        self._data = np.array(data, dtype=np.float64)

    def get_data(self) -> np.ndarray:
        return self._data.copy()

    def generate(
        self,
        length: int = 100,
        *,
        length_scale: Optional[float] = None,
        amplitude: Optional[float] = None,
        noise_level: Optional[float] = None,
    ) -> np.ndarray:
        """
        Sample one curve of ``length`` points at integer positions.

        Per-call arguments override the values given at construction.
        """
        if length <= 0:
            raise ValueError("length must be positive")
        length_scale = self.length_scale if length_scale is None else length_scale
        amplitude = self.amplitude if amplitude is None else amplitude
        noise_level = self.noise_level if noise_level is None else noise_level
        if noise_level < 0:
            raise ValueError("noise_level must be >= 0")

        positions = np.arange(length, dtype=np.float64)
        K = RBF(length_scale=length_scale, variance=amplitude)(positions)
        K.add_to_diagonal(noise_level)

        L = cholesky_decomposition(K)
        sample = L.data @ self._rng.standard_normal(length)

        if self.walk_around and self._data.size > 0:
            n = min(length, self._data.size)
            sample[:n] = self._data[:n] + 0.1 * sample[:n]

        return sample
