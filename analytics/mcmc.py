"""
Bayesian estimation via random-walk Metropolis-Hastings

The sampler works entirely on the log scale: a proposal is accepted when
log(u) < log_target(proposal) - log_target(current), u ~ U(0, 1).
"""

import numpy as np
import pandas as pd
from scipy import stats

from . import mnl

# Prior and proposal scales for MNL part-worths
BINARY_PRIOR_SD = 5.0
PRICE_PRIOR_SD = 1.0
BINARY_STEP_SD = 0.05
PRICE_STEP_SD = 0.005


def log_prior(beta, prior_sd):
    """Independent N(0, prior_sd^2) log-density summed over parameters."""
    return float(np.sum(stats.norm.logpdf(beta, loc=0.0, scale=prior_sd)))


def log_posterior(beta, log_lik, prior_sd):
    """Unnormalized log-posterior: log_lik(beta) + log_prior(beta)."""
    return log_lik(beta) + log_prior(beta, prior_sd)


def metropolis_hastings(log_target, start, step_sd, n_steps=11000,
                        burn_in=1000, seed=None):
    """
    Random-walk Metropolis-Hastings with independent normal proposals.

    Parameters
    ----------
    log_target : callable
        Unnormalized log-density: f(beta) -> float.
    start : ndarray, shape (d,)
        Initial state; log_target must be finite there.
    step_sd : float or ndarray, shape (d,)
        Proposal standard deviation per dimension.
    n_steps : int
        Total number of iterations (including burn-in).
    burn_in : int
        Leading iterations discarded from `draws`.
    seed : int or None
        Random seed.

    Returns
    -------
    dict with keys:
        chain           : ndarray, shape (n_steps, d), every state visited
        draws           : chain[burn_in:]
        accepted        : bool array, shape (n_steps,)
        acceptance_rate : fraction of accepted proposals
    """
    if n_steps <= 0:
        raise ValueError("n_steps must be positive")
    if not 0 <= burn_in < n_steps:
        raise ValueError("burn_in must be in [0, n_steps)")
    current = np.array(start, dtype=float)
    d = current.size
    step_sd = np.broadcast_to(np.asarray(step_sd, dtype=float), (d,))
    if np.any(step_sd <= 0):
        raise ValueError("proposal step sizes must be positive")

    current_lp = log_target(current)
    if not np.isfinite(current_lp):
        raise ValueError("log target is not finite at the starting point")

    if seed is not None:
        np.random.seed(seed)

    chain = np.empty((n_steps, d))
    accepted = np.zeros(n_steps, dtype=bool)
    for s in range(n_steps):
        proposal = current + np.random.normal(0.0, step_sd)
        log_u = np.log(np.random.uniform())
        proposal_lp = log_target(proposal)
        if np.isfinite(proposal_lp) and log_u < proposal_lp - current_lp:
            current, current_lp = proposal, proposal_lp
            accepted[s] = True
        chain[s] = current

    return dict(
        chain=chain,
        draws=chain[burn_in:],
        accepted=accepted,
        acceptance_rate=float(accepted.mean()),
    )


def posterior_summary(draws, names, level=0.95):
    """
    Posterior mean, SD and equal-tailed credible interval per parameter.
    """
    draws = np.asarray(draws, dtype=float)
    if draws.ndim != 2 or draws.shape[1] != len(names):
        raise ValueError("draws must have shape (n_draws, len(names))")
    lo, hi = np.percentile(draws, [50 * (1 - level), 50 * (1 + level)], axis=0)
    return pd.DataFrame(
        dict(
            mean=draws.mean(axis=0),
            sd=draws.std(axis=0, ddof=1),
            ci_lo=lo,
            ci_hi=hi,
        ),
        index=pd.Index(list(names), name="parameter"),
    )


def _autocorrelation(x):
    n = len(x)
    xc = x - x.mean()
    f = np.fft.rfft(xc, n=2 * n)
    acov = np.fft.irfft(f * np.conjugate(f))[:n] / n
    return acov / acov[0]


def effective_sample_size(chain):
    """
    Effective sample size per parameter (Geyer's initial positive
    sequence estimator of the integrated autocorrelation time).
    """
    chain = np.asarray(chain, dtype=float)
    if chain.ndim == 1:
        chain = chain[:, None]
    n = chain.shape[0]
    ess = np.empty(chain.shape[1])
    for j in range(chain.shape[1]):
        x = chain[:, j]
        if n < 2 or np.var(x) == 0:
            ess[j] = n
            continue
        rho = _autocorrelation(x)
        tau = -1.0
        t = 0
        while t + 1 < n:
            pair = rho[t] + rho[t + 1]
            if pair <= 0:
                break
            tau += 2 * pair
            t += 2
        ess[j] = n / tau
    return ess


def mnl_prior_sd(names, price_name="price"):
    """N(0, 5^2) on binary attributes, N(0, 1^2) on price."""
    return np.array([PRICE_PRIOR_SD if n == price_name else BINARY_PRIOR_SD
                     for n in names])


def mnl_step_sd(names, price_name="price"):
    """Proposal SDs: 0.05 on binary attributes, 0.005 on price."""
    return np.array([PRICE_STEP_SD if n == price_name else BINARY_STEP_SD
                     for n in names])


def mnl_posterior(panel, prior_sd=None, price_name="price"):
    """
    Log-posterior of the MNL part-worths for a choice panel.

    Returns
    -------
    callable beta -> float
    """
    X, y, names = panel["X"], panel["y"], panel["names"]
    if prior_sd is None:
        prior_sd = mnl_prior_sd(names, price_name)

    def _log_target(beta):
        return log_posterior(beta, lambda b: mnl.log_likelihood(b, X, y),
                             prior_sd)

    return _log_target
