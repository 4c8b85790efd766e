import jax
import jax.numpy as jnp
import numpy as np
import pytest
from scipy import stats

from stgmrf_jax import likelihoods
from stgmrf_jax.likelihoods import negative_binomial, poisson, zero_inflated_poisson


def test_registry_lookup():
    assert likelihoods.get("poisson") is poisson
    assert set(likelihoods.available()) >= {"poisson", "negative_binomial", "zero_inflated_poisson"}


def test_registry_rejects_duplicates_and_unknown_names():
    with pytest.raises(KeyError):
        likelihoods.register("poisson", poisson)
    with pytest.raises(KeyError, match="Unknown likelihood"):
        likelihoods.get("gamma")


def test_poisson_matches_log_pmf():
    y = jnp.array([0.0, 1.0, 3.0, 12.0])
    f = jnp.array([-1.0, 0.0, np.log(3.0), 2.2])
    expected = -stats.poisson.logpmf(np.asarray(y), np.exp(np.asarray(f)))
    assert np.allclose(poisson.neg_loglik_1d(y, f), expected)


def test_negative_binomial_matches_log_pmf():
    y = jnp.array([0.0, 2.0, 9.0])
    f = jnp.array([0.3, -0.5, 1.7])
    r = 2.5
    mu = np.exp(np.asarray(f))
    expected = -stats.nbinom.logpmf(np.asarray(y), r, r / (r + mu))
    got = negative_binomial.neg_loglik_1d(y, f, {"dispersion": jnp.array(r)})
    assert np.allclose(got, expected)


def test_zero_inflated_poisson():
    p = 0.3
    f = jnp.array([0.4, 0.4])
    y = jnp.array([0.0, 4.0])
    mu = np.exp(0.4)
    expected = np.array([
        -np.log(p + (1 - p) * np.exp(-mu)),
        -np.log(1 - p) - stats.poisson.logpmf(4, mu),
    ])
    got = zero_inflated_poisson.neg_loglik_1d(y, f, {"zero_prob": jnp.array(p)})
    assert np.allclose(got, expected)


def test_zero_inflated_poisson_reduces_to_poisson():
    y = jnp.array([0.0, 1.0, 5.0])
    f = jnp.array([0.1, 0.9, 1.2])
    got = zero_inflated_poisson.neg_loglik_1d(y, f, {"zero_prob": jnp.array(0.0)})
    assert np.allclose(got, poisson.neg_loglik_1d(y, f))


def test_poisson_gradient():
    # d/df [exp(f) - y f] = exp(f) - y
    y, f = 3.0, 0.5
    g = jax.grad(lambda v: poisson.neg_loglik_1d(y, v))(f)
    assert float(g) == pytest.approx(np.exp(f) - y)
