# stgmrf_jax/likelihoods/zero_inflated_poisson.py
import jax.numpy as jnp

from .poisson import PoissonLikelihood


class ZeroInflatedPoissonLikelihood:
    """
    Zero-inflated Poisson with log link:

        p(0 | f)     = p + (1 - p) exp(-exp(f))
        p(y | f)     = (1 - p) Poisson(y; exp(f)),   y > 0

    p is the probability of a structural zero.
    """

    @staticmethod
    def neg_loglik_1d(y, f, phi_like):
        """
        phi_like:
            {"zero_prob": p}   0 <= p < 1
        """
        p = jnp.asarray(phi_like["zero_prob"])
        log1m_p = jnp.log1p(-p)

        nll_zero = -jnp.logaddexp(jnp.log(p), log1m_p - jnp.exp(f))
        nll_positive = -log1m_p + PoissonLikelihood.neg_loglik_1d(y, f)
        # branch on the observed count only
        return jnp.where(y == 0, nll_zero, nll_positive)


zero_inflated_poisson = ZeroInflatedPoissonLikelihood()
