"""
Optimal-superposition RMSD.

For two centered point sets u and v of n atoms:

    E0   = sum |u_k|^2 + sum |v_k|^2
    R    = sum u_k v_k^T                      (3x3 cross-covariance)
    s    = singular values of R, s0 >= s1 >= s2
    RMSD = sqrt(max(0, E0 - 2 (s0 + s1 + d s2)) / n)

with d = -1 when det(R) < 0 and d = +1 otherwise. The sign flip restricts
the superposition to proper rotations; pass ``allow_reflection=True`` to use
the plain sum (the best orthogonal transform, mirror images included).

E0 - 2 sum(s) cancels when the sets nearly coincide, so the result carries an
absolute round-off floor of order sqrt(eps * E0 / n) (eps = float64 machine
epsilon). For protein-sized frames in angstrom that is roughly 1e-6 to 1e-5;
identical or rigidly moved frames give a value below it, not exactly zero.

The kernel never modifies its inputs and works in O(n) plus a constant-cost
3x3 SVD, so the pairwise loop costs pairs * constant.
"""
from __future__ import annotations

from typing import Optional
import logging

import numpy as np

from .base import InputError
from ..linalg import Matrix33, SVDBackend, default_backend

logger = logging.getLogger(__name__)

__all__ = ["superposition_rmsd", "superposition_rmsd_many", "optimal_rotation", "superpose"]


def _as_points(x, name: str) -> np.ndarray:
    arr = np.asarray(x, dtype=float)
    if arr.ndim == 1:
        if arr.size % 3 != 0:
            raise InputError(f"{name}: flattened coordinates must have a multiple of 3 values, got {arr.size}")
        return arr.reshape(-1, 3)
    if arr.ndim == 2 and arr.shape[1] == 3:
        return arr
    raise InputError(f"{name}: expected (n, 3) or flattened (3n,) coordinates, got shape {arr.shape}")


def _check_pair(a: np.ndarray, b: np.ndarray) -> int:
    if a.shape[0] != b.shape[0]:
        raise InputError(f"Atom count mismatch: {a.shape[0]} vs {b.shape[0]}")
    if a.shape[0] == 0:
        raise InputError("Cannot superpose empty coordinate sets")
    return a.shape[0]


def _rotation_sum(s: np.ndarray, det: np.ndarray, allow_reflection: bool) -> np.ndarray:
    if allow_reflection:
        return s.sum(axis=-1)
    sign = np.where(det < 0.0, -1.0, 1.0)
    return s[..., 0] + s[..., 1] + sign * s[..., 2]


def superposition_rmsd(
    u,
    v,
    *,
    backend: Optional[SVDBackend] = None,
    allow_reflection: bool = False,
) -> float:
    """
    RMSD between two centered coordinate sets after optimal superposition.

    Parameters
    ----------
    u, v : array_like
        (n, 3) or flattened (3n,) coordinates, already centered at the origin.
    backend : SVDBackend, optional
        Decomposition backend; defaults to numpy.
    allow_reflection : bool
        Use the raw singular value sum instead of restricting to proper rotations.

    Raises
    ------
    InputError
        n == 0 or the atom counts differ.
    NumericalError
        The decomposition failed.
    """
    a = _as_points(u, "u")
    b = _as_points(v, "v")
    n = _check_pair(a, b)

    e0 = float(np.einsum("ij,ij->", a, a) + np.einsum("ij,ij->", b, b))
    r = Matrix33.cross_covariance(a, b)
    s = r.singular_values(backend)
    ss = float(_rotation_sum(s, np.asarray(r.determinant()), allow_reflection))
    return float(np.sqrt(max(0.0, e0 - 2.0 * ss) / n))


def superposition_rmsd_many(
    u,
    others,
    *,
    backend: Optional[SVDBackend] = None,
    allow_reflection: bool = False,
) -> np.ndarray:
    """
    RMSD of one centered frame against a stack of centered frames.

    ``others`` is (k, 3n) or (k, n, 3). Returns a length-k array whose entries
    equal ``superposition_rmsd(u, others[i])`` up to round-off.
    """
    a = _as_points(u, "u")
    stack = np.asarray(others, dtype=float)
    if stack.ndim == 2:
        if stack.shape[1] != a.size:
            raise InputError(f"Atom count mismatch: {a.shape[0]} vs {stack.shape[1] // 3}")
        stack = stack.reshape(stack.shape[0], a.shape[0], 3)
    elif stack.ndim != 3 or stack.shape[2] != 3:
        raise InputError(f"others: expected (k, 3n) or (k, n, 3) coordinates, got shape {stack.shape}")
    if stack.shape[0] == 0:
        return np.zeros(0, dtype=float)
    n = _check_pair(a, stack[0])

    e0 = np.einsum("ij,ij->", a, a) + np.einsum("kij,kij->k", stack, stack)
    r = np.einsum("ia,kib->kab", a, stack)
    s = (backend or default_backend()).singular_values(r)
    det = np.linalg.det(r) if not allow_reflection else np.ones(len(r))
    ss = _rotation_sum(s, det, allow_reflection)
    return np.sqrt(np.maximum(0.0, e0 - 2.0 * ss) / n)


def optimal_rotation(
    u,
    v,
    *,
    backend: Optional[SVDBackend] = None,
    allow_reflection: bool = False,
) -> Matrix33:
    """
    The orthogonal matrix M minimizing sum |M u_k - v_k|^2 for centered u, v.

    With R = U S V^T, M = V D U^T where D = diag(1, 1, d) and d = sign(det(V U^T)),
    or D = I when reflections are allowed.
    """
    a = _as_points(u, "u")
    b = _as_points(v, "v")
    _check_pair(a, b)

    svd = Matrix33.cross_covariance(a, b).decompose(backend, compute_factors=True)
    uu = Matrix33(svd.u)
    vv = Matrix33(svd.vt).transpose()
    d = 1.0
    if not allow_reflection and vv.multiply(uu.transpose()).determinant() < 0.0:
        d = -1.0
    return vv.multiply(Matrix33.diagonal(1.0, 1.0, d)).multiply(uu.transpose())


def superpose(u, v, **kwargs) -> np.ndarray:
    """Return u (as (n, 3)) rotated onto v. Inputs are not modified."""
    a = _as_points(u, "u")
    return optimal_rotation(a, v, **kwargs).transform(a)
