# stgmrf_jax/likelihoods/base.py

_LIKELIHOOD_REGISTRY = {}


def register(name, likelihood):
    """
    Register an observation model under a string key.

    A likelihood is any object with
        neg_loglik_1d(y, f, phi_like) -> per-observation negative log-mass
    where f is the log-mean (log-density) and phi_like the dict of
    observation-model parameters carried in Hyperparameters.likelihood_params.
    """
    if name in _LIKELIHOOD_REGISTRY:
        raise KeyError(f"Likelihood '{name}' already registered.")
    _LIKELIHOOD_REGISTRY[name] = likelihood


def get(name):
    """
    Retrieve an observation model by name.
    """
    try:
        return _LIKELIHOOD_REGISTRY[name]
    except KeyError:
        raise KeyError(
            f"Unknown likelihood '{name}'. "
            f"Available: {list(_LIKELIHOOD_REGISTRY.keys())}"
        )


def available():
    return sorted(_LIKELIHOOD_REGISTRY)
