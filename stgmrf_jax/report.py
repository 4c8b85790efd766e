# stgmrf_jax/report.py
"""
Derived quantities of the SPDE parameterisation.

With smoothness nu = 1 in two dimensions:

    range  = sqrt(8) / kappa
    sigma  = 1 / sqrt(4 pi tau^2 kappa^2)

Both are closed-form in the fixed effects and do not depend on the latent
fields. They are JAX expressions, so an external optimiser can push its
parameter covariance through them; derived_standard_errors() does this with
the delta method.
"""
from __future__ import annotations

from typing import Dict

import jax
import jax.numpy as jnp

from .core.params import Hyperparameters, FIXED_EFFECT_NAMES
from .exceptions import ValidationError

DERIVED_NAMES = ("range", "sigma_spatial", "sigma_spatiotemporal")


def spatial_range(log_kappa) -> jnp.ndarray:
    """Distance at which correlation drops to about 0.13."""
    return jnp.sqrt(8.0) / jnp.exp(jnp.asarray(log_kappa))


def marginal_sd(log_tau, log_kappa) -> jnp.ndarray:
    """Marginal standard deviation of a field with precision scale exp(log_tau)."""
    log_tau = jnp.asarray(log_tau)
    log_kappa = jnp.asarray(log_kappa)
    return 1.0 / jnp.sqrt(4.0 * jnp.pi * jnp.exp(2.0 * log_tau) * jnp.exp(2.0 * log_kappa))


def derived_quantities(params: Hyperparameters) -> Dict[str, jnp.ndarray]:
    return {
        "range": spatial_range(params.log_kappa),
        "sigma_spatial": marginal_sd(params.log_tau_spatial, params.log_kappa),
        "sigma_spatiotemporal": marginal_sd(params.log_tau_spatiotemporal, params.log_kappa),
    }


def derived_standard_errors(params: Hyperparameters, covariance) -> Dict[str, jnp.ndarray]:
    """
    Delta-method standard errors of the derived quantities.

    Args:
        params: point estimate of the fixed effects
        covariance: (4, 4) covariance of the fixed effects in
            FIXED_EFFECT_NAMES order, e.g. the inverse Hessian of the
            marginal objective computed by the caller

    Returns:
        Dict keyed like derived_quantities() with the standard errors.
    """
    cov = jnp.asarray(covariance, dtype=jnp.result_type(float))
    k = len(FIXED_EFFECT_NAMES)
    if cov.shape != (k, k):
        raise ValidationError(
            "covariance must cover the fixed effects",
            expected=f"shape ({k}, {k}) ordered as {FIXED_EFFECT_NAMES}",
            got=f"shape {cov.shape}",
        )

    def g(theta):
        d = derived_quantities(params.with_fixed_effects(theta))
        return jnp.stack([d[name] for name in DERIVED_NAMES])

    theta = params.fixed_effects().astype(cov.dtype)
    J = jax.jacfwd(g)(theta)  # (3, 4)
    var = jnp.einsum("ij,jk,ik->i", J, cov, J)
    se = jnp.sqrt(var)
    return {name: se[i] for i, name in enumerate(DERIVED_NAMES)}


__all__ = [
    "DERIVED_NAMES",
    "spatial_range",
    "marginal_sd",
    "derived_quantities",
    "derived_standard_errors",
]
