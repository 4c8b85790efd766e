# stgmrf_jax/model.py
"""
Spatiotemporal SPDE count model: joint negative log-likelihood.

Model
-----
    Q(kappa)           = kappa^4 M0 + 2 kappa^2 M1 + M2
    omega              ~ GMRF(Q) scaled by 1 / tau_spatial
    epsilon[:, t]      ~ GMRF(Q) scaled by 1 / tau_spatiotemporal,  t = 0..n_t-1
    log_d[s, t]        = beta0 + omega[s] + epsilon[s, t]
    c_i                ~ Poisson(exp(log_d[s_i, t_i]))    (missing c_i skipped)

The time slices of epsilon are independent draws from the same spatial
GMRF (separable, no autoregression in time).

The joint negative log-likelihood has three components, kept in this order:

    0: data term                 -sum_i log p(c_i | log_d)
    1: spatial prior term        -log p(omega)
    2: spatiotemporal prior term -sum_t log p(epsilon[:, t])

evaluate() is a pure function of (ModelData, Hyperparameters, LatentFields).
It is built from differentiable primitives only, so it can be passed to
jax.jit / jax.grad, and the random effects can be integrated out by an
external Laplace approximation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger

import numpy as np
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from . import likelihoods
from .core.data import ModelData
from .core.params import Hyperparameters, LatentFields
from .energy.base import EnergyTerm
from .energy.gmrf import precision_logdet, scaled_gmrf_neg_log_density
from .exceptions import ValidationError
from .report import derived_quantities
from .spde.precision import assemble_precision

logger = getLogger(__name__)


@dataclass(frozen=True)
class EngineCFG:
    """Configuration for likelihood evaluation."""
    likelihood: str = "poisson"  # registry name, see stgmrf_jax.likelihoods
    check_fields: bool = True    # validate latent-field shapes on each call


@register_pytree_node_class
@dataclass(frozen=True)
class EvaluationResult:
    """
    Output of one likelihood evaluation (pytree, can be returned from jit).

    data_term, spatial_prior_term, spatiotemporal_prior_term: scalars
    joint_neg_log_lik: their sum, the objective to minimise
    log_density: (n_s, n_t) fitted log-density
    range, sigma_spatial, sigma_spatiotemporal: derived scalars
    """
    data_term: jnp.ndarray
    spatial_prior_term: jnp.ndarray
    spatiotemporal_prior_term: jnp.ndarray
    joint_neg_log_lik: jnp.ndarray
    log_density: jnp.ndarray
    range: jnp.ndarray
    sigma_spatial: jnp.ndarray
    sigma_spatiotemporal: jnp.ndarray

    def tree_flatten(self):
        children = (
            self.data_term,
            self.spatial_prior_term,
            self.spatiotemporal_prior_term,
            self.joint_neg_log_lik,
            self.log_density,
            self.range,
            self.sigma_spatial,
            self.sigma_spatiotemporal,
        )
        return children, None

    @classmethod
    def tree_unflatten(cls, aux, children):
        return cls(*children)

    @property
    def components(self) -> jnp.ndarray:
        """(3,) vector [data, spatial prior, spatiotemporal prior]."""
        return jnp.stack([self.data_term, self.spatial_prior_term, self.spatiotemporal_prior_term])

    def as_report(self) -> dict:
        """Host-side copy for reporting. Do not call inside traced code."""
        return {
            "jnll_comp": np.asarray(self.components),
            "jnll": float(self.joint_neg_log_lik),
            "log_density": np.asarray(self.log_density),
            "range": float(self.range),
            "sigma_spatial": float(self.sigma_spatial),
            "sigma_spatiotemporal": float(self.sigma_spatiotemporal),
        }


# ============================================================
# Building blocks
# ============================================================

def check_fields(model: ModelData, fields: LatentFields) -> None:
    """Shape check; shapes are static, so this also works under jit."""
    expected = {
        "spatial": (model.n_s,),
        "spatiotemporal": (model.n_s, model.n_t),
    }
    for name, shape in expected.items():
        got = jnp.shape(getattr(fields, name))
        if got != shape:
            raise ValidationError(
                f"Latent field '{name}' has the wrong shape",
                expected=f"shape {shape}",
                got=f"shape {got}",
            )


def log_density_field(params: Hyperparameters, fields: LatentFields) -> jnp.ndarray:
    """log_d[s, t] = beta0 + omega[s] + epsilon[s, t], shape (n_s, n_t)."""
    spatial = jnp.asarray(fields.spatial)
    return jnp.asarray(params.beta0) + spatial[:, None] + jnp.asarray(fields.spatiotemporal)


def data_neg_log_lik(
    model: ModelData,
    log_density: jnp.ndarray,
    params: Hyperparameters,
    likelihood="poisson",
) -> jnp.ndarray:
    """
    Negative log-likelihood of the observed counts.

    Missing counts are dropped through the static `observed` mask, so they
    contribute exactly zero and their stored value is never read.
    """
    if isinstance(likelihood, str):
        likelihood = likelihoods.get(likelihood)

    obs = model.observations
    keep = np.flatnonzero(obs.observed)
    y = jnp.asarray(obs.counts[keep])
    f = log_density[obs.site_index[keep], obs.time_index[keep]]
    return jnp.sum(likelihood.neg_loglik_1d(y, f, params.likelihood_params))


# ============================================================
# Evaluation
# ============================================================

def evaluate(
    model: ModelData,
    params: Hyperparameters,
    fields: LatentFields,
    cfg: EngineCFG = EngineCFG(),
) -> EvaluationResult:
    """
    Evaluate the joint negative log-likelihood and its breakdown.

    Args:
        model: immutable model definition (mesh basis + observations)
        params: fixed effects
        fields: random effects
        cfg: engine configuration

    Returns:
        EvaluationResult. Degenerate parameters (e.g. a precision matrix that
        is not positive definite) give non-finite values instead of raising.
    """
    if cfg.check_fields:
        check_fields(model, fields)
    likelihood = likelihoods.get(cfg.likelihood)

    Q = assemble_precision(model.mesh, params.log_kappa)
    logdet = precision_logdet(Q)

    spatial_prior = scaled_gmrf_neg_log_density(
        Q, jnp.asarray(fields.spatial), 1.0 / jnp.exp(params.log_tau_spatial), logdet=logdet
    )
    if model.n_t == 0:
        spatiotemporal_prior = jnp.zeros_like(spatial_prior)
    else:
        spatiotemporal_prior = jnp.sum(
            scaled_gmrf_neg_log_density(
                Q,
                jnp.asarray(fields.spatiotemporal),
                1.0 / jnp.exp(params.log_tau_spatiotemporal),
                logdet=logdet,
            )
        )

    log_density = log_density_field(params, fields)
    data = data_neg_log_lik(model, log_density, params, likelihood)

    jnll = data + spatial_prior + spatiotemporal_prior
    derived = derived_quantities(params)

    return EvaluationResult(
        data_term=data,
        spatial_prior_term=spatial_prior,
        spatiotemporal_prior_term=spatiotemporal_prior,
        joint_neg_log_lik=jnll,
        log_density=log_density,
        range=derived["range"],
        sigma_spatial=derived["sigma_spatial"],
        sigma_spatiotemporal=derived["sigma_spatiotemporal"],
    )


@dataclass(frozen=True, eq=False)
class SpatioTemporalEnergy(EnergyTerm):
    """
    Joint negative log-likelihood as an EnergyTerm.

    Signature:
        E(params, fields) -> scalar

    This is the object an external optimiser or Laplace integrator should
    differentiate, e.g.

        energy = SpatioTemporalEnergy(model)
        value, (g_params, g_fields) = jax.value_and_grad(energy, argnums=(0, 1))(params, fields)
    """
    model: ModelData
    cfg: EngineCFG = field(default_factory=EngineCFG)

    def __post_init__(self):
        # fail early on an unknown observation model
        likelihoods.get(self.cfg.likelihood)
        logger.info(
            "SpatioTemporalEnergy: likelihood=%s, n_s=%d, n_t=%d",
            self.cfg.likelihood,
            self.model.n_s,
            self.model.n_t,
        )

    def __call__(self, params: Hyperparameters, fields: LatentFields) -> jnp.ndarray:
        return evaluate(self.model, params, fields, self.cfg).joint_neg_log_lik

    def evaluate(self, params: Hyperparameters, fields: LatentFields) -> EvaluationResult:
        return evaluate(self.model, params, fields, self.cfg)


__all__ = [
    "EngineCFG",
    "EvaluationResult",
    "check_fields",
    "log_density_field",
    "data_neg_log_lik",
    "evaluate",
    "SpatioTemporalEnergy",
]
