import hypothesis.extra.numpy as npst
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from scipy import sparse

from stgmrf_jax.core import MeshBasis
from stgmrf_jax.spde import (
    assemble_precision,
    precision_coefficients,
    precision_scipy,
    sparse_logdet,
)


@st.composite
def symmetric_sparse_matrix(draw, n):
    values = draw(
        npst.arrays(
            dtype=np.float64,
            shape=(n, n),
            elements=st.floats(min_value=-10, max_value=10, allow_nan=False, allow_infinity=False),
        )
    )
    mask = draw(npst.arrays(dtype=np.bool_, shape=(n, n)))
    A = np.where(mask, values, 0.0)
    return sparse.csr_matrix(np.triu(A) + np.triu(A, 1).T)


@st.composite
def symmetric_mesh(draw, max_size=8):
    n = draw(st.integers(min_value=1, max_value=max_size))
    return tuple(draw(symmetric_sparse_matrix(n)) for _ in range(3))


def test_identity_basis_gives_identity_precision():
    mesh = MeshBasis.from_matrices(np.eye(2), np.zeros((2, 2)), np.zeros((2, 2)))
    Q = assemble_precision(mesh, 0.0)
    assert Q.shape == (2, 2)
    assert jnp.allclose(Q.todense(), jnp.eye(2))


def test_precision_formula_matches_scipy(chain_matrices):
    M0, M1, M2 = chain_matrices
    mesh = MeshBasis.from_matrices(M0, M1, M2)
    log_kappa = -0.7
    kappa = np.exp(log_kappa)
    expected = (kappa**4 * M0 + 2 * kappa**2 * M1 + M2).toarray()

    Q = assemble_precision(mesh, log_kappa)
    assert np.allclose(np.asarray(Q.todense()), expected)
    assert np.allclose(precision_scipy(mesh, log_kappa).toarray(), expected)


def test_pattern_is_fixed_across_log_kappa(chain_matrices):
    mesh = MeshBasis.from_matrices(*chain_matrices)
    Q_a = assemble_precision(mesh, -2.0)
    Q_b = assemble_precision(mesh, 1.5)
    assert Q_a.nse == Q_b.nse == mesh.nnz
    assert np.array_equal(np.asarray(Q_a.indices), np.asarray(Q_b.indices))
    # tridiagonal G and pentadiagonal G C^-1 G on a chain of 6
    assert mesh.nnz == 6 + 2 * 5 + 2 * 4


def test_non_finite_log_kappa_propagates(chain_matrices):
    mesh = MeshBasis.from_matrices(*chain_matrices)
    coeffs = precision_coefficients(mesh, jnp.nan)
    assert not jnp.all(jnp.isfinite(coeffs))
    coeffs = precision_coefficients(mesh, jnp.inf)
    assert not jnp.all(jnp.isfinite(coeffs))


def test_sparse_logdet_matches_dense(chain_matrices):
    mesh = MeshBasis.from_matrices(*chain_matrices)
    Q = precision_scipy(mesh, 0.3)
    sign, expected = np.linalg.slogdet(Q.toarray())
    assert sign > 0
    assert sparse_logdet(Q) == pytest.approx(expected, rel=1e-10)


def test_sparse_logdet_singular_is_minus_inf():
    Q = sparse.csc_matrix(np.array([[1.0, 1.0], [1.0, 1.0]]))
    with pytest.warns(UserWarning):
        assert sparse_logdet(Q) == -np.inf


def test_all_zero_basis_gives_zero_precision():
    Z = sparse.csr_matrix((3, 3))
    Q = assemble_precision(MeshBasis.from_matrices(Z, Z, Z), 0.4)
    assert Q.shape == (3, 3)
    assert Q.nse == 0
    assert jnp.all(Q.todense() == 0.0)


@settings(max_examples=50, deadline=None)
@given(mats=symmetric_mesh(), log_kappa=st.floats(min_value=-3, max_value=3))
def test_precision_is_symmetric(mats, log_kappa):
    mesh = MeshBasis.from_matrices(*mats)
    Q = np.asarray(assemble_precision(mesh, log_kappa).todense())
    assert np.allclose(Q, Q.T, rtol=0, atol=1e-12 * max(1.0, np.abs(Q).max()))
