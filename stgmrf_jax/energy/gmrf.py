# stgmrf_jax/energy/gmrf.py
"""
Gaussian Markov random field densities.

A zero-mean GMRF with precision Q has negative log-density

    E(x) = 1/2 x^T Q x - 1/2 log|Q| + n/2 log(2 pi).

The SPDE precision describes a field of fixed marginal scale; the model
rescales it by `scale = 1 / tau`. For y = scale * x the density picks up the
Jacobian of the linear map, so

    E_scaled(y) = E(y / scale) + n log(scale).

All functions are pure JAX and accept both x of shape (n,) and a batch of
independent fields stacked as columns, shape (n, k).
"""
from __future__ import annotations

from typing import Optional

import jax.numpy as jnp
from jax.experimental import sparse as jsparse


def precision_logdet(Q: jsparse.BCOO) -> jnp.ndarray:
    """
    log|Q| = 2 * sum(log(diag(L))), with L the Cholesky factor of Q.

    JAX has no sparse Cholesky, so the factor is taken on the dense view of
    Q. The value matches a sparse factorisation, but each call costs
    O(n^2) memory and O(n^3) time in the number of mesh nodes. For large
    meshes, check against spde.sparse_logdet on the host. If Q is not
    positive definite the factor contains NaN and so does the result.
    """
    L = jnp.linalg.cholesky(Q.todense())
    return 2.0 * jnp.sum(jnp.log(jnp.diag(L)))


def quadratic_form(Q: jsparse.BCOO, x: jnp.ndarray) -> jnp.ndarray:
    """x^T Q x via a sparse product; one value per column if x is (n, k)."""
    return jnp.sum(x * (Q @ x), axis=0)


def gmrf_neg_log_density(
    Q: jsparse.BCOO,
    x: jnp.ndarray,
    logdet: Optional[jnp.ndarray] = None,
) -> jnp.ndarray:
    """
    Negative log-density of N(0, Q^{-1}) at x.

    Args:
        Q: precision matrix (n, n)
        x: field (n,) or independent fields as columns (n, k)
        logdet: precomputed log|Q|; computed from Q if None

    Returns:
        Scalar for x of shape (n,), shape (k,) for x of shape (n, k).
    """
    if logdet is None:
        logdet = precision_logdet(Q)
    n = x.shape[0]
    return 0.5 * quadratic_form(Q, x) - 0.5 * logdet + 0.5 * n * jnp.log(2.0 * jnp.pi)


def scaled_gmrf_neg_log_density(
    Q: jsparse.BCOO,
    x: jnp.ndarray,
    scale,
    logdet: Optional[jnp.ndarray] = None,
) -> jnp.ndarray:
    """
    Negative log-density of x = scale * z with z ~ N(0, Q^{-1}).

    Equivalent to a GMRF with precision Q / scale^2. The n log(scale) term is
    the Jacobian of the rescaling and keeps tau interpretable as the
    precision scale of the field.
    """
    scale = jnp.asarray(scale)
    n = x.shape[0]
    return gmrf_neg_log_density(Q, x / scale, logdet=logdet) + n * jnp.log(scale)


__all__ = [
    "precision_logdet",
    "quadratic_form",
    "gmrf_neg_log_density",
    "scaled_gmrf_neg_log_density",
]
