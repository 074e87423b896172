# tests/test_superpose.py
import numpy as np
import pytest

from fastrmsds.analysis.base import InputError, NumericalError
from fastrmsds.analysis.cache import center_at_origin
from fastrmsds.analysis.superpose import (
    superposition_rmsd,
    superposition_rmsd_many,
    optimal_rotation,
    superpose,
)
from fastrmsds.linalg import NumpySVDBackend, CODE_NON_FINITE, CODE_NOT_CONVERGED

from conftest import random_rotation


def _centered(points):
    return center_at_origin(np.array(points, dtype=float).reshape(-1)).reshape(-1, 3)


@pytest.fixture
def points():
    rng = np.random.default_rng(3)
    return _centered(rng.normal(size=(20, 3)))


def test_rigid_transform_gives_zero(points):
    rng = np.random.default_rng(11)
    moved = points @ random_rotation(rng).T + np.array([3.0, -1.0, 7.5])
    assert superposition_rmsd(points, _centered(moved)) < 1e-6


def test_identical_sets_give_zero(points):
    assert superposition_rmsd(points, points) < 1e-7


def test_rigid_transform_at_protein_scale():
    rng = np.random.default_rng(17)
    frame = _centered(rng.uniform(-25.0, 25.0, size=(500, 3)))
    moved = _centered(frame @ random_rotation(rng).T + np.array([40.0, -12.0, 3.0]))
    # cancellation in E0 - 2 sum(s) leaves an absolute floor of order sqrt(eps * E0 / n)
    e0 = 2.0 * np.einsum("ij,ij->", frame, frame)
    floor = np.sqrt(1024 * np.finfo(float).eps * e0 / len(frame))
    assert floor < 1e-4
    assert superposition_rmsd(frame, frame) < floor
    assert superposition_rmsd(frame, moved) < floor
    batched = superposition_rmsd_many(frame, np.stack([frame, moved]))
    assert np.all(batched < floor)


def test_symmetric_and_non_negative(points):
    rng = np.random.default_rng(5)
    other = _centered(points + rng.normal(scale=0.3, size=points.shape))
    ab = superposition_rmsd(points, other)
    ba = superposition_rmsd(other, points)
    assert ab > 0.0
    assert ab == pytest.approx(ba, abs=1e-10)
    assert np.isfinite(ab)


def test_accepts_flattened_coordinates(points):
    rng = np.random.default_rng(8)
    other = _centered(points + rng.normal(scale=0.2, size=points.shape))
    assert superposition_rmsd(points.ravel(), other.ravel()) == pytest.approx(
        superposition_rmsd(points, other)
    )


def test_matches_explicit_rotation(points):
    rng = np.random.default_rng(9)
    other = _centered(points @ random_rotation(rng).T + rng.normal(scale=0.1, size=points.shape))
    fitted = superpose(points, other)
    direct = np.sqrt(((fitted - other) ** 2).sum(axis=1).mean())
    assert superposition_rmsd(points, other) == pytest.approx(direct, abs=1e-8)
    assert optimal_rotation(points, other).is_rotation()


def test_inputs_not_modified(points):
    before = points.copy()
    other = _centered(points[::-1])
    other_before = other.copy()
    superposition_rmsd(points, other)
    superposition_rmsd_many(points, other[np.newaxis])
    np.testing.assert_array_equal(points, before)
    np.testing.assert_array_equal(other, other_before)


def test_zero_atoms_raise():
    empty = np.zeros((0, 3))
    with pytest.raises(InputError):
        superposition_rmsd(empty, empty)


def test_atom_count_mismatch_raises(points):
    with pytest.raises(InputError):
        superposition_rmsd(points, points[:-1])
    with pytest.raises(InputError):
        superposition_rmsd_many(points, points[np.newaxis, :-1])


def test_bad_shape_raises():
    with pytest.raises(InputError):
        superposition_rmsd(np.zeros(7), np.zeros(7))


def test_mirror_image_only_matches_with_reflection(points):
    mirror = points * np.array([1.0, 1.0, -1.0])
    proper = superposition_rmsd(points, mirror)
    improper = superposition_rmsd(points, mirror, allow_reflection=True)
    assert improper < 1e-7
    assert proper > 1e-3
    assert not optimal_rotation(points, mirror, allow_reflection=True).is_rotation()
    assert optimal_rotation(points, mirror).is_rotation()


def test_batch_matches_scalar(points):
    rng = np.random.default_rng(13)
    stack = np.stack([
        _centered(points @ random_rotation(rng).T + rng.normal(scale=0.2, size=points.shape))
        for _ in range(5)
    ])
    batch = superposition_rmsd_many(points, stack.reshape(5, -1))
    single = [superposition_rmsd(points, s) for s in stack]
    np.testing.assert_allclose(batch, single, atol=1e-10)
    assert superposition_rmsd_many(points, np.zeros((0, points.size))).shape == (0,)


def test_two_atom_half_turn():
    a = _centered([[0, 0, 0], [1, 0, 0]])
    b = _centered([[1, 0, 0], [0, 0, 0]])
    assert superposition_rmsd(a, b) == pytest.approx(0.0, abs=1e-7)


def test_non_finite_input_raises_numerical_error(points):
    bad = points.copy()
    bad[0, 0] = np.nan
    with pytest.raises(NumericalError) as excinfo:
        superposition_rmsd(points, bad)
    assert excinfo.value.code == CODE_NON_FINITE


def test_svd_failure_carries_code(points, monkeypatch):
    def fail(*args, **kwargs):
        raise np.linalg.LinAlgError("SVD did not converge")

    monkeypatch.setattr(np.linalg, "svd", fail)
    with pytest.raises(NumericalError) as excinfo:
        superposition_rmsd(points, points, backend=NumpySVDBackend())
    assert excinfo.value.code == CODE_NOT_CONVERGED
    assert "code=1" in str(excinfo.value)
