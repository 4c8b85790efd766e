# stgmrf_jax/core/params.py
from __future__ import annotations

from dataclasses import dataclass, field

import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

# Order of the fixed-effect vector used by the delta method and by callers
# that work with flat parameter vectors.
FIXED_EFFECT_NAMES = (
    "beta0",
    "log_tau_spatial",
    "log_tau_spatiotemporal",
    "log_kappa",
)


@register_pytree_node_class
@dataclass(frozen=True)
class Hyperparameters:
    """
    Fixed effects of the spatiotemporal model (pytree, JIT-friendly).

    beta0:                  intercept of the log-density
    log_tau_spatial:        log precision-scale of the spatial field
    log_tau_spatiotemporal: log precision-scale of the spatiotemporal field
    log_kappa:              log SPDE decay rate, shared by both fields
    likelihood_params:      observation-model parameters (dict pytree),
                            empty for the Poisson model

    Owned by the external optimizer; read-only within one evaluation.
    """
    beta0: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    log_tau_spatial: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    log_tau_spatiotemporal: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    log_kappa: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    likelihood_params: dict = field(default_factory=dict)

    def tree_flatten(self):
        children = (
            self.beta0,
            self.log_tau_spatial,
            self.log_tau_spatiotemporal,
            self.log_kappa,
            self.likelihood_params,
        )
        return children, None

    @classmethod
    def tree_unflatten(cls, aux, children):
        return cls(*children)

    def fixed_effects(self) -> jnp.ndarray:
        """Stack the four scalar fixed effects in FIXED_EFFECT_NAMES order."""
        return jnp.stack([jnp.asarray(getattr(self, n)) for n in FIXED_EFFECT_NAMES])

    def with_fixed_effects(self, theta) -> Hyperparameters:
        """Inverse of fixed_effects(); likelihood_params are carried over."""
        theta = jnp.asarray(theta)
        return Hyperparameters(
            beta0=theta[0],
            log_tau_spatial=theta[1],
            log_tau_spatiotemporal=theta[2],
            log_kappa=theta[3],
            likelihood_params=self.likelihood_params,
        )


@register_pytree_node_class
@dataclass(frozen=True)
class LatentFields:
    """
    Random effects of the model.

    spatial:        (n_s,)      one value per mesh node
    spatiotemporal: (n_s, n_t)  one value per (node, time step);
                                space along rows, time along columns
    """
    spatial: jnp.ndarray
    spatiotemporal: jnp.ndarray

    def tree_flatten(self):
        return (self.spatial, self.spatiotemporal), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        return cls(*children)

    @classmethod
    def zeros(cls, n_s: int, n_t: int, dtype=None) -> LatentFields:
        return cls(
            spatial=jnp.zeros((n_s,), dtype=dtype),
            spatiotemporal=jnp.zeros((n_s, n_t), dtype=dtype),
        )


__all__ = ["Hyperparameters", "LatentFields", "FIXED_EFFECT_NAMES"]
