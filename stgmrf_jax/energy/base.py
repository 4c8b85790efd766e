# stgmrf_jax/energy/base.py
from __future__ import annotations

from typing import Protocol, runtime_checkable
import jax.numpy as jnp


@runtime_checkable
class EnergyTerm(Protocol):
    """
    Protocol for energy terms.

    Design principles
    -----------------
    - An EnergyTerm represents a scalar-valued energy functional
      (a negative log-density, normalising constants included).
    - It MUST be callable and return a scalar `jnp.ndarray` with shape ().
    - It MUST be side-effect free, so that it can be jitted, differentiated
      and called concurrently with different arguments.

    Canonical convention
    --------------------
    * SpatioTemporalEnergy:
        E(params, fields) -> scalar

    Optimisers and Laplace integrators outside this package MUST treat an
    EnergyTerm as a black box.
    """

    def __call__(self, *args, **kwargs) -> jnp.ndarray:
        """
        Compute energy.

        Returns
        -------
        jnp.ndarray
            Scalar energy (shape ()). Non-finite when the parameters are
            numerically degenerate; never raises for that reason.
        """
        ...
