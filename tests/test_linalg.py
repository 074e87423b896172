import numpy as np
import pytest

from fastrmsds.analysis.base import NumericalError
from fastrmsds.linalg import Matrix33, NumpySVDBackend, SVDResult, default_backend


def test_identity_and_diagonal():
    i = Matrix33.identity()
    assert i.is_rotation()
    assert i.determinant() == pytest.approx(1.0)
    d = Matrix33.diagonal(1.0, 1.0, -1.0)
    assert d.determinant() == pytest.approx(-1.0)
    assert not d.is_rotation()


def test_multiply_and_transpose():
    a = Matrix33(np.arange(9).reshape(3, 3))
    b = Matrix33.diagonal(2.0, 3.0, 4.0)
    np.testing.assert_allclose(a.multiply(b).values, np.arange(9).reshape(3, 3) @ np.diag([2, 3, 4]))
    np.testing.assert_allclose(a.transpose().values, np.arange(9).reshape(3, 3).T)
    assert a.multiply(Matrix33.identity()) == a


def test_multiply_rejects_scalars():
    with pytest.raises(TypeError):
        Matrix33.identity().multiply(2.0)


def test_wrong_shape_rejected():
    with pytest.raises(ValueError):
        Matrix33(np.eye(2))


def test_values_are_read_only():
    m = Matrix33.identity()
    with pytest.raises(ValueError):
        m.values[0, 0] = 5.0


def test_cross_covariance():
    u = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
    v = np.array([[0.0, 1.0, 0.0], [3.0, 0.0, 0.0]])
    r = Matrix33.cross_covariance(u, v)
    np.testing.assert_allclose(r.values, u.T @ v)
    assert r.values[0, 1] == pytest.approx(1.0)
    assert r.values[1, 0] == pytest.approx(6.0)


def test_transform_applies_to_rows():
    rot = Matrix33([[0, -1, 0], [1, 0, 0], [0, 0, 1]])
    pts = np.array([[1.0, 0.0, 0.0]])
    np.testing.assert_allclose(rot.transform(pts), [[0.0, 1.0, 0.0]])


def test_decompose_returns_descending_values_and_factors():
    m = Matrix33(np.diag([1.0, 5.0, 3.0]))
    res = m.decompose()
    assert isinstance(res, SVDResult)
    np.testing.assert_allclose(res.singular_values, [5.0, 3.0, 1.0])
    np.testing.assert_allclose(res.u @ np.diag(res.singular_values) @ res.vt, m.values, atol=1e-12)
    assert m.decompose(compute_factors=False).u is None


def test_backend_handles_stacks():
    stack = np.stack([np.eye(3), 2 * np.eye(3)])
    s = default_backend().singular_values(stack)
    assert s.shape == (2, 3)
    np.testing.assert_allclose(s[1], [2.0, 2.0, 2.0])


def test_backend_rejects_bad_input():
    backend = NumpySVDBackend()
    with pytest.raises(ValueError):
        backend.decompose(np.eye(4))
    with pytest.raises(NumericalError) as excinfo:
        backend.decompose(np.full((3, 3), np.inf))
    assert excinfo.value.code == -1


def test_repr_and_hash():
    m = Matrix33.identity()
    assert repr(m).startswith("Matrix33([")
    with pytest.raises(TypeError):
        hash(m)
