import jax
import pytest

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves
from ollcube.oll.context import SolverContext
from ollcube.storage.store import OLLStore


@pytest.fixture
def store(tmp_path):
    """Store rooted in a per-test temporary data directory."""
    return OLLStore(tmp_path / "data")


@pytest.fixture
def context(store):
    return SolverContext.create(store=store)


@pytest.fixture
def solved():
    return CubeState.solved()


@pytest.fixture
def sune_state():
    """Solved cube with the Sune inverse applied (pattern 01111010)."""
    state = CubeState.solved()
    apply_moves(state, "R U R' U R U2 R'")
    return state


@pytest.fixture
def rng_key():
    return jax.random.PRNGKey(42)
