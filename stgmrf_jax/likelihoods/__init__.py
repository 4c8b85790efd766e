# stgmrf_jax/likelihoods/__init__.py

from .base import register, get, available

from .poisson import poisson
from .negative_binomial import negative_binomial
from .zero_inflated_poisson import zero_inflated_poisson

register("poisson", poisson)
register("negative_binomial", negative_binomial)
register("zero_inflated_poisson", zero_inflated_poisson)

__all__ = [
    "register",
    "get",
    "available",
    "poisson",
    "negative_binomial",
    "zero_inflated_poisson",
]
