# stgmrf_jax/likelihoods/poisson.py
import jax.numpy as jnp
import jax.scipy.special as jsp


class PoissonLikelihood:
    """
    Poisson likelihood with log link:
        p(y | f) = Poisson(y; exp(f))
    """

    @staticmethod
    def neg_loglik_1d(y, f, phi_like=None):
        """
        -log Poisson(y; exp(f)) = exp(f) - y f + log(y!)

        y >= 0 integer (as float); phi_like unused.
        """
        rate = jnp.exp(f)
        return rate - y * f + jsp.gammaln(y + 1.0)


poisson = PoissonLikelihood()
