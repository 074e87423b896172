# FastRMSDs/src/fastrmsds/linalg.py
"""
Small fixed-size linear algebra for superposition.

Matrix33 is an explicit 3x3 matrix type with named operations (multiply,
transpose, determinant, decompose). It never mixes with scalars implicitly.

SVD goes through the SVDBackend interface: "decompose one or a stack of 3x3
matrices, returning singular values and optionally the orthogonal factors".
NumpySVDBackend is the implementation shipped with the package.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np

from .analysis.base import NumericalError

logger = logging.getLogger(__name__)

__all__ = ["SVDResult", "SVDBackend", "NumpySVDBackend", "default_backend", "Matrix33"]

# LAPACK-style info codes carried by NumericalError
CODE_NOT_CONVERGED = 1
CODE_NON_FINITE = -1


@dataclass(frozen=True)
class SVDResult:
    """Singular values in descending order; u/vt only when factors were requested."""

    singular_values: np.ndarray
    u: Optional[np.ndarray] = None
    vt: Optional[np.ndarray] = None


class SVDBackend(ABC):
    name = "abstract"

    @abstractmethod
    def decompose(self, matrices: np.ndarray, compute_factors: bool = False) -> SVDResult:
        """
        Decompose a (3, 3) matrix or a (k, 3, 3) stack.

        Raises NumericalError on non-finite input or non-convergence.
        """

    def singular_values(self, matrices: np.ndarray) -> np.ndarray:
        return self.decompose(matrices, compute_factors=False).singular_values


class NumpySVDBackend(SVDBackend):
    name = "numpy"

    def decompose(self, matrices: np.ndarray, compute_factors: bool = False) -> SVDResult:
        m = np.asarray(matrices, dtype=float)
        if m.shape[-2:] != (3, 3):
            raise ValueError(f"expected (..., 3, 3) matrices, got shape {m.shape}")
        if not np.all(np.isfinite(m)):
            raise NumericalError("SVD input contains NaN or infinite values", CODE_NON_FINITE)
        try:
            if compute_factors:
                u, s, vt = np.linalg.svd(m, compute_uv=True)
                return SVDResult(singular_values=s, u=u, vt=vt)
            s = np.linalg.svd(m, compute_uv=False)
        except np.linalg.LinAlgError as e:
            raise NumericalError(f"SVD did not converge: {e}", CODE_NOT_CONVERGED) from e
        return SVDResult(singular_values=s)


_DEFAULT_BACKEND = NumpySVDBackend()


def default_backend() -> SVDBackend:
    return _DEFAULT_BACKEND


class Matrix33:
    """A 3x3 real matrix. Instances are immutable; operations return new matrices."""

    __slots__ = ("_values",)

    def __init__(self, values):
        arr = np.array(values, dtype=float)
        if arr.shape != (3, 3):
            raise ValueError(f"Matrix33 needs a 3x3 array, got shape {arr.shape}")
        arr.flags.writeable = False
        self._values = arr

    @classmethod
    def identity(cls) -> "Matrix33":
        return cls(np.eye(3))

    @classmethod
    def diagonal(cls, d0: float, d1: float, d2: float) -> "Matrix33":
        return cls(np.diag([d0, d1, d2]))

    @classmethod
    def cross_covariance(cls, u: np.ndarray, v: np.ndarray) -> "Matrix33":
        """R[a][b] = sum_k u_k[a] * v_k[b] for two (n, 3) point sets."""
        return cls(np.asarray(u, dtype=float).T @ np.asarray(v, dtype=float))

    @property
    def values(self) -> np.ndarray:
        return self._values

    def multiply(self, other: "Matrix33") -> "Matrix33":
        if not isinstance(other, Matrix33):
            raise TypeError("Matrix33.multiply expects a Matrix33")
        return Matrix33(self._values @ other._values)

    def transform(self, points: np.ndarray) -> np.ndarray:
        """Apply the matrix to each row of an (n, 3) point array."""
        return np.asarray(points, dtype=float) @ self._values.T

    def transpose(self) -> "Matrix33":
        return Matrix33(self._values.T)

    def determinant(self) -> float:
        return float(np.linalg.det(self._values))

    def decompose(self, backend: Optional[SVDBackend] = None, compute_factors: bool = True) -> SVDResult:
        return (backend or _DEFAULT_BACKEND).decompose(self._values, compute_factors=compute_factors)

    def singular_values(self, backend: Optional[SVDBackend] = None) -> np.ndarray:
        return (backend or _DEFAULT_BACKEND).singular_values(self._values)

    def is_rotation(self, tol: float = 1e-8) -> bool:
        """Orthogonal with determinant +1."""
        v = self._values
        return bool(np.allclose(v @ v.T, np.eye(3), atol=tol) and abs(self.determinant() - 1.0) < tol)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix33):
            return NotImplemented
        return bool(np.array_equal(self._values, other._values))

    __hash__ = None

    def __repr__(self) -> str:
        rows = "; ".join(" ".join(f"{x:.6g}" for x in row) for row in self._values)
        return f"Matrix33([{rows}])"
