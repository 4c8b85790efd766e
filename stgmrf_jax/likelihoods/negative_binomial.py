# stgmrf_jax/likelihoods/negative_binomial.py
import jax.numpy as jnp
import jax.scipy.special as jsp


class NegativeBinomialLikelihood:
    """
    Negative Binomial likelihood with log-mean parameterisation.

    mean = exp(f)
    variance = mean + mean^2 / r
    """

    @staticmethod
    def neg_loglik_1d(y, f, phi_like):
        """
        phi_like:
            {"dispersion": r}   r > 0
        """
        r = jnp.asarray(phi_like["dispersion"])
        log_r = jnp.log(r)
        log_r_plus_mu = jnp.logaddexp(log_r, f)

        return -(
            jsp.gammaln(y + r)
            - jsp.gammaln(r)
            - jsp.gammaln(y + 1.0)
            + r * (log_r - log_r_plus_mu)
            + y * (f - log_r_plus_mu)
        )


negative_binomial = NegativeBinomialLikelihood()
