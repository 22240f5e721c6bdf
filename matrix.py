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
Dense matrix container and the Cholesky machinery used by the Gaussian
process code.

The container keeps a fixed shape for its whole life and hands out copies of
its rows, columns and backing array so that solver state cannot be mutated
from the outside.
"""

from typing import Sequence, Union

import numpy as np
from scipy.linalg import LinAlgError, solve_triangular


ArrayLike = Union["Matrix", np.ndarray, Sequence[float], Sequence[Sequence[float]]]


class Matrix:
    """Fixed-shape 2-D grid of floats backed by a numpy array."""

    def __init__(self, rows: int, columns: int):
        if rows < 0 or columns < 0:
            raise ValueError("Matrix dimensions must be non-negative")
        self.rows = int(rows)
        self.columns = int(columns)
        self.data = np.zeros((self.rows, self.columns), dtype=np.float64)

    @classmethod
    def zeros(cls, rows: int, columns: int) -> "Matrix":
        return cls(rows, columns)

    @classmethod
    def from_array(cls, data) -> "Matrix":
        """Build a matrix from a 2-D array-like; the values are deep-copied."""
        arr = np.array(data, dtype=np.float64)
        if arr.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got {arr.ndim}-D")
        matrix = cls(arr.shape[0], arr.shape[1])
        matrix.data[...] = arr
        return matrix

    @property
    def shape(self):
        return (self.rows, self.columns)

    def _check_row(self, row: int) -> None:
        if row < 0 or row >= self.rows:
            raise IndexError(f"Row index out of bounds: {row}")

    def _check_column(self, column: int) -> None:
        if column < 0 or column >= self.columns:
            raise IndexError(f"Column index out of bounds: {column}")

    def get(self, row: int, column: int) -> float:
        if row < 0 or row >= self.rows or column < 0 or column >= self.columns:
            raise IndexError(f"Index out of bounds: ({row}, {column})")
        return float(self.data[row, column])

    def set(self, row: int, column: int, value: float) -> None:
        if row < 0 or row >= self.rows or column < 0 or column >= self.columns:
            raise IndexError(f"Index out of bounds: ({row}, {column})")
        self.data[row, column] = value

    def get_row(self, row: int) -> np.ndarray:
        self._check_row(row)
        return self.data[row].copy()

    def get_column(self, column: int) -> np.ndarray:
        self._check_column(column)
        return self.data[:, column].copy()

    def diagonal(self) -> np.ndarray:
        return np.diag(self.data).copy()

    def add_to_diagonal(self, value: float) -> None:
        """Add ``value`` to every diagonal entry in place."""
        n = min(self.rows, self.columns)
        self.data[np.arange(n), np.arange(n)] += value

    def transpose(self) -> "Matrix":
        return Matrix.from_array(self.data.T)

    def clone(self) -> "Matrix":
        return Matrix.from_array(self.data)

    def to_array(self) -> np.ndarray:
        return self.data.copy()

    def to_list(self):
        return self.data.tolist()

    def __matmul__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        if self.columns != other.rows:
            raise ValueError(
                f"Cannot multiply {self.rows}x{self.columns} by {other.rows}x{other.columns}"
            )
        return Matrix.from_array(self.data @ other.data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self.data, other.data))

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, columns={self.columns})"


def ensure_2d(X: ArrayLike) -> Matrix:
    """
    Normalise input points to a Matrix with one point per row.

    A flat vector of ``n`` scalars becomes an ``n x 1`` matrix.
    """
    if isinstance(X, Matrix):
        return X.clone()
    arr = np.asarray(X, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise ValueError(f"Input points must be 1-D or 2-D, got {arr.ndim}-D")
    return Matrix.from_array(arr)


def _as_array(matrix: ArrayLike) -> np.ndarray:
    if isinstance(matrix, Matrix):
        return matrix.data
    return np.asarray(matrix, dtype=np.float64)


def cholesky_decomposition(matrix: ArrayLike) -> Matrix:
    """
    Factor a symmetric positive-definite matrix as ``L @ L.T``.

    Works column by column; a non-positive pivot stops the factorisation
    at the column where it appears.

    Args:
        matrix: Square symmetric matrix.

    Returns:
        Lower-triangular Matrix ``L``.

    Raises:
        ValueError: If ``matrix`` is not square.
        LinAlgError: If ``matrix`` is not positive definite.
    """
    M = _as_array(matrix)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError("Matrix must be square for Cholesky decomposition")

    n = M.shape[0]
    L = Matrix.zeros(n, n)
    data = L.data

    for j in range(n):
        row_j = data[j, :j]
        diagonal = M[j, j] - np.dot(row_j, row_j)
        if not diagonal > 0.0:
            raise LinAlgError(f"Matrix is not positive definite at position ({j}, {j})")
        pivot = np.sqrt(diagonal)
        data[j, j] = pivot
        if j + 1 < n:
            data[j + 1:, j] = (M[j + 1:, j] - data[j + 1:, :j] @ row_j) / pivot

    return L


def forward_substitution(L: ArrayLike, b) -> np.ndarray:
    """Solve ``L x = b`` for lower-triangular ``L``."""
    return solve_triangular(_as_array(L), np.asarray(b, dtype=np.float64), lower=True)


def back_substitution(L: ArrayLike, b) -> np.ndarray:
    """Solve ``L.T x = b`` for lower-triangular ``L``."""
    return solve_triangular(
        _as_array(L), np.asarray(b, dtype=np.float64), lower=True, trans="T"
    )


def solve_cholesky(L: ArrayLike, y) -> np.ndarray:
    """Solve ``(L L^T) x = y`` given the Cholesky factor ``L``."""
    z = forward_substitution(L, y)
    return back_substitution(L, z)
