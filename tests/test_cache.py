# tests/test_cache.py
import logging
import warnings

import numpy as np
import pytest

from fastrmsds.analysis.base import InputError, CacheMemoryWarning
from fastrmsds.analysis.cache import (
    CoordinateCache,
    center_at_origin,
    center_frames,
    estimate_cache_bytes,
    check_memory_footprint,
)
from fastrmsds.analysis.frames import ArrayFrameSource, FileFrameSource
from fastrmsds.config import RunConfig, STREAMING, MATERIALIZED

GIB = 2**30


def test_estimate_formula():
    assert estimate_cache_bytes(1000, 500) == 12_000_000


def test_warning_fires_above_threshold(caplog):
    caplog.set_level(logging.WARNING, logger="fastrmsds")
    # 12 MB needed, 2/3 of 16 MB available
    with pytest.warns(CacheMemoryWarning):
        fired = check_memory_footprint(1000, 500, fraction=2 / 3, physical_memory=16_000_000)
    assert fired is True
    assert any("Coordinate cache needs" in r.getMessage() for r in caplog.records)


def test_warning_silent_below_threshold():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert check_memory_footprint(1000, 500, fraction=2 / 3, physical_memory=GIB) is False
        # exactly at the limit does not warn
        assert check_memory_footprint(1000, 500, fraction=0.5, physical_memory=24_000_000) is False


def test_cache_memory_warning_is_resource_warning():
    assert issubclass(CacheMemoryWarning, ResourceWarning)


def test_center_at_origin_in_place():
    flat = np.array([1.0, 2.0, 3.0, 3.0, 4.0, 5.0])
    out = center_at_origin(flat)
    assert out is flat
    np.testing.assert_allclose(flat.reshape(-1, 3).sum(axis=0), 0.0, atol=1e-12)


def test_center_frames_rows_independent():
    frames = np.array([[0.0, 0, 0, 2, 2, 2], [10.0, 10, 10, 12, 12, 12]])
    center_frames(frames)
    np.testing.assert_allclose(frames[0], frames[1])
    np.testing.assert_allclose(frames.reshape(2, -1, 3).sum(axis=1), 0.0, atol=1e-12)


def test_materialized_cache_is_centered_scaled_and_read_only(traj):
    before = traj.xyz.copy()
    src = ArrayFrameSource(traj.xyz)
    cache = CoordinateCache(src, range(traj.n_frames), np.arange(traj.n_atoms), RunConfig(units="angstrom"))
    assert len(cache) == traj.n_frames
    assert cache.mode == MATERIALIZED
    block = cache.as_array()
    assert block.shape == (traj.n_frames, 3 * traj.n_atoms)
    np.testing.assert_allclose(block.reshape(traj.n_frames, -1, 3).sum(axis=1), 0.0, atol=1e-6)
    expected = (traj.xyz[2] - traj.xyz[2].mean(axis=0)).ravel() * 10.0
    np.testing.assert_allclose(cache[2], expected, atol=1e-5)
    with pytest.raises(ValueError):
        block[0, 0] = 1.0
    # the source is never centered in place
    np.testing.assert_array_equal(traj.xyz, before)


def test_streaming_matches_materialized(dataset_paths, topology):
    traj_path, top_path = dataset_paths
    src = FileFrameSource(traj_path, top_path)
    atoms = topology.select("name CA")
    frames = [5, 0, 3, 3]
    mat = CoordinateCache(src, frames, atoms, RunConfig())
    stream = CoordinateCache(src, frames, atoms, RunConfig(cache="streaming"))
    assert stream.streaming and not mat.streaming
    np.testing.assert_allclose(stream.as_array(), mat.as_array(), atol=1e-6)
    np.testing.assert_allclose(stream.block(1, 3), mat.block(1, 3), atol=1e-6)
    assert stream.block(2, 2).shape == (0, 3 * len(atoms))


def test_auto_stream_switches_mode():
    src = ArrayFrameSource(np.zeros((4, 3, 3)) + np.arange(3)[:, None])
    cfg = RunConfig(auto_stream=True)
    with pytest.warns(CacheMemoryWarning):
        cache = CoordinateCache(src, range(4), [0, 1, 2], cfg, physical_memory=16)
    assert cache.memory_warning
    assert cache.mode == STREAMING


def test_warning_does_not_switch_without_auto_stream():
    src = ArrayFrameSource(np.random.default_rng(0).normal(size=(4, 3, 3)))
    with pytest.warns(CacheMemoryWarning):
        cache = CoordinateCache(src, range(4), [0, 1, 2], RunConfig(), physical_memory=16)
    assert cache.mode == MATERIALIZED


def test_empty_selection_raises(traj):
    src = ArrayFrameSource(traj.xyz)
    with pytest.raises(InputError):
        CoordinateCache(src, range(3), [], RunConfig())
    with pytest.raises(InputError):
        CoordinateCache(src, [], [0, 1], RunConfig())


def test_seek_failure_raises_input_error(traj):
    src = ArrayFrameSource(traj.xyz)
    with pytest.raises(InputError, match="Cannot seek"):
        CoordinateCache(src, [0, traj.n_frames + 4], [0, 1, 2], RunConfig())
    with pytest.raises(InputError, match="Cannot seek"):
        CoordinateCache(src, [traj.n_frames], [0, 1, 2], RunConfig(cache="streaming"))


def test_atom_count_mismatch_raises():
    class ShrinkingSource(ArrayFrameSource):
        def read_frame(self, index, atom_indices):
            frame = super().read_frame(index, atom_indices)
            return frame[:-1] if index == 1 else frame

    src = ShrinkingSource(np.random.default_rng(1).normal(size=(3, 4, 3)))
    cache = CoordinateCache(src, range(3), range(4), RunConfig(cache="streaming"))
    assert cache[0].shape == (12,)
    with pytest.raises(InputError, match="expected 4"):
        cache.frame(1)


def test_position_out_of_range(traj):
    cache = CoordinateCache(ArrayFrameSource(traj.xyz), range(2), [0, 1], RunConfig())
    with pytest.raises(IndexError):
        cache.frame(2)
