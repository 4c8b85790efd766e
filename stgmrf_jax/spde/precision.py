# stgmrf_jax/spde/precision.py
"""
SPDE precision matrix.

For the SPDE approximation with smoothness alpha = 2 the precision of the
unit-scale field is

    Q(kappa) = kappa^4 M0 + 2 kappa^2 M1 + M2

with M0 the mass matrix and M1, M2 the stiffness-derived matrices of the
mesh. The three matrices share one sparsity pattern (see MeshBasis), so
assembly is a weighted sum of three coefficient vectors and is
differentiable in log_kappa.

Host-side helpers (SciPy) are provided for diagnostics; they are not
differentiable and must not be called inside traced code.
"""
from __future__ import annotations

import warnings
from logging import getLogger

import numpy as np
import jax.numpy as jnp
from jax.experimental import sparse as jsparse
from scipy import sparse
from scipy.sparse.linalg import splu

from ..core.data import MeshBasis

logger = getLogger(__name__)


def precision_coefficients(mesh: MeshBasis, log_kappa) -> jnp.ndarray:
    """
    Coefficients of Q on the mesh sparsity pattern, shape (nnz,).

    A non-finite log_kappa gives non-finite coefficients; nothing raises.
    """
    log_kappa = jnp.asarray(log_kappa)
    w0 = jnp.exp(4.0 * log_kappa)
    w1 = 2.0 * jnp.exp(2.0 * log_kappa)
    return w0 * mesh.m0 + w1 * mesh.m1 + mesh.m2


def assemble_precision(mesh: MeshBasis, log_kappa) -> jsparse.BCOO:
    """
    Sparse precision matrix Q = exp(4 log_kappa) M0 + 2 exp(2 log_kappa) M1 + M2.

    Returns a BCOO array of shape (n_s, n_s) whose index set is the fixed
    mesh pattern; only the data vector depends on log_kappa.
    """
    data = precision_coefficients(mesh, log_kappa)
    return jsparse.BCOO(
        (data, jnp.asarray(mesh.indices)),
        shape=(mesh.n_s, mesh.n_s),
        indices_sorted=True,
        unique_indices=True,
    )


# ============================================================
# Host-side diagnostics
# ============================================================

def precision_scipy(mesh: MeshBasis, log_kappa: float) -> sparse.csr_matrix:
    """Q as a SciPy CSR matrix (float64), for a concrete log_kappa."""
    M0, M1, M2 = mesh.to_scipy()
    kappa2 = np.exp(2.0 * float(log_kappa))
    return (kappa2 * kappa2) * M0 + (2.0 * kappa2) * M1 + M2


def sparse_logdet(Q) -> float:
    """
    log|Q| from a sparse LU factorisation (SuperLU).

    The determinant is read off the factor diagonals,
        log|Q| = sum log|diag(L)| + sum log|diag(U)|,
    which is exact for symmetric positive-definite Q. Returns -inf if Q is
    exactly singular.
    """
    Q = sparse.csc_matrix(Q, dtype=np.float64)
    try:
        lu = splu(Q)
    except RuntimeError as e:
        if "exactly singular" in str(e):
            warnings.warn("Precision matrix is singular, returning -inf for log determinant")
            return -np.inf
        raise
    diag_l = lu.L.diagonal()
    diag_u = lu.U.diagonal()
    logdet = float(np.sum(np.log(np.abs(diag_l))) + np.sum(np.log(np.abs(diag_u))))
    logger.debug("sparse_logdet: n=%d, nnz=%d, logdet=%.6g", Q.shape[0], Q.nnz, logdet)
    return logdet


__all__ = [
    "precision_coefficients",
    "assemble_precision",
    "precision_scipy",
    "sparse_logdet",
]
