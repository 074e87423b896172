# tests/conftest.py
# Enable Matplotlib's built-in pytest fixtures (e.g., `matplotlib`)
pytest_plugins = ("matplotlib.testing.conftest",)

import warnings
from pathlib import Path
import numpy as np
import pytest
import mdtraj as md

from fastrmsds import FastRMSDs

# Silence the benign MDTraj CRYST1 warning for PDB files written without a unit cell
warnings.filterwarnings(
    "ignore",
    message="Unlikely unit cell vectors detected in PDB file likely resulting from a dummy CRYST1 record",
    category=UserWarning,
    module="mdtraj",
)

N_RESIDUES = 6
N_FRAMES = 8


def random_rotation(rng) -> np.ndarray:
    """Uniformly random proper rotation (det +1)."""
    q, r = np.linalg.qr(rng.normal(size=(3, 3)))
    q = q @ np.diag(np.sign(np.diag(r)))
    if np.linalg.det(q) < 0:
        q[:, 0] = -q[:, 0]
    return q


def make_topology(n_residues: int = N_RESIDUES) -> md.Topology:
    """Backbone-only alanine chain: N, CA, C per residue."""
    top = md.Topology()
    chain = top.add_chain()
    for i in range(n_residues):
        res = top.add_residue("ALA", chain, resSeq=i + 1)
        top.add_atom("N", md.element.nitrogen, res)
        top.add_atom("CA", md.element.carbon, res)
        top.add_atom("C", md.element.carbon, res)
    return top


def make_xyz(n_frames: int, n_atoms: int, seed: int = 7) -> np.ndarray:
    """
    Frames in nm: a base structure with per-frame noise, each frame randomly
    rotated and translated so nothing lines up without superposition.
    """
    rng = np.random.default_rng(seed)
    base = rng.normal(scale=0.5, size=(n_atoms, 3))
    xyz = np.empty((n_frames, n_atoms, 3))
    for k in range(n_frames):
        noisy = base + rng.normal(scale=0.05 * (k + 1), size=base.shape)
        xyz[k] = noisy @ random_rotation(rng).T + rng.uniform(-2.0, 2.0, size=3)
    return xyz.astype(np.float32)


@pytest.fixture
def matplotlib():
    """The matplotlib module, using the non-interactive Agg backend."""
    import matplotlib as mpl
    mpl.use("Agg")
    yield mpl


@pytest.fixture(scope="session")
def topology():
    return make_topology()


@pytest.fixture(scope="session")
def traj(topology):
    return md.Trajectory(make_xyz(N_FRAMES, topology.n_atoms), topology)


@pytest.fixture(scope="function")
def dataset_paths(tmp_path, traj):
    """Return (traj_path, top_path): the synthetic trajectory written as DCD + PDB."""
    top_path = tmp_path / "model.pdb"
    traj_path = tmp_path / "sim.dcd"
    traj[0].save_pdb(str(top_path))
    traj.save_dcd(str(traj_path))
    return traj_path, top_path


@pytest.fixture(scope="function")
def outdir(tmp_path):
    return tmp_path / "out"


@pytest.fixture(scope="function")
def fastrmsds(dataset_paths):
    traj_path, top_path = dataset_paths
    return FastRMSDs(str(traj_path), str(top_path), atoms="name CA", units="nm")
