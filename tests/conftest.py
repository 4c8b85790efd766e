import jax

jax.config.update("jax_enable_x64", True)

import numpy as np
import pytest
from scipy import sparse

from stgmrf_jax import ModelData


def chain_mesh_matrices(n_s: int, h: float = 1.0):
    """
    SPDE matrices of a 1-D chain with lumped mass:
        M0 = C (diagonal), M1 = G (Neumann stiffness), M2 = G C^{-1} G.
    """
    mass = np.full(n_s, h)
    mass[[0, -1]] = 0.5 * h
    C = sparse.diags(mass).tocsr()

    main = np.full(n_s, 2.0 / h)
    main[[0, -1]] = 1.0 / h
    off = np.full(n_s - 1, -1.0 / h)
    G = sparse.diags([off, main, off], offsets=[-1, 0, 1]).tocsr()

    M2 = (G @ sparse.diags(1.0 / mass) @ G).tocsr()
    return C, G, M2


@pytest.fixture
def chain_matrices():
    return chain_mesh_matrices(6)


@pytest.fixture
def small_model(chain_matrices):
    """6 sites, 3 time steps, 8 observations (one missing)."""
    M0, M1, M2 = chain_matrices
    c_i = [3, 0, 5, None, 2, 1, 7, 4]
    s_i = [0, 1, 2, 3, 4, 5, 0, 2]
    t_i = [0, 0, 1, 1, 2, 2, 2, 0]
    return ModelData.from_arrays(6, 3, np.ones(6), c_i, s_i, t_i, M0, M1, M2)
