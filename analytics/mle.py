"""
Maximum Likelihood Estimation -- generic framework

Provides the MLE driver shared by the count and choice models, with
standard errors from the observed Fisher information (Hessian) and
profile likelihoods.
"""

import numpy as np
from scipy.optimize import minimize, approx_fprime

# minimize methods that accept an analytic Hessian
_SECOND_ORDER = ("Newton-CG", "dogleg", "trust-ncg", "trust-krylov",
                 "trust-exact")


def fit_mle(neg_log_lik, start, args=(), method="BFGS", jac=None, hess=None,
            bounds=None, track_path=False):
    """
    Generic MLE via scipy.optimize.minimize.

    Parameters
    ----------
    neg_log_lik : callable
        Negative log-likelihood function: f(beta, *args) -> float.
    start : ndarray
        Starting parameter values.
    args : tuple
        Extra arguments passed to neg_log_lik.
    method : str
        Optimization method (default BFGS).
    jac : callable or None
        Gradient of neg_log_lik, same signature.
    hess : callable or None
        Analytic Hessian of neg_log_lik. When None, the Hessian is
        computed numerically at the optimum.
    bounds : sequence of (min, max) or None
        Box constraints, for methods that accept them (e.g. L-BFGS-B).
    track_path : bool
        If True, record the optimization path.

    Returns
    -------
    dict with keys:
        beta      : MLE estimates
        se        : standard errors from observed Fisher info
        cov       : inverse Hessian (NaN if singular)
        nll       : negative log-likelihood at optimum
        hessian   : Hessian at the MLE
        converged : bool
        path      : list of parameter arrays (if track_path)
    """
    start = np.asarray(start, dtype=float)
    path = [start.copy()]
    callback = (lambda xk: path.append(xk.copy())) if track_path else None

    res = minimize(neg_log_lik, start, args=args, method=method, jac=jac,
                   hess=hess if method in _SECOND_ORDER else None,
                   bounds=bounds,
                   callback=callback)

    beta = res.x
    if hess is not None:
        H = hess(beta, *args)
    else:
        H = numerical_hessian(neg_log_lik, beta, args=args)
    try:
        cov = np.linalg.inv(H)
        with np.errstate(invalid="ignore"):
            se = np.sqrt(np.diag(cov))
    except np.linalg.LinAlgError:
        cov = np.full((len(beta), len(beta)), np.nan)
        se = np.full(len(beta), np.nan)

    result = dict(
        beta=beta,
        se=se,
        cov=cov,
        nll=float(res.fun),
        hessian=H,
        converged=bool(res.success),
    )
    if track_path:
        result["path"] = np.array(path)

    return result


def numerical_hessian(neg_log_lik, beta, args=(), eps=1e-5):
    """
    Numerical Hessian of the negative log-likelihood at beta.

    Parameters
    ----------
    neg_log_lik : callable
    beta : ndarray
    args : tuple
    eps : float

    Returns
    -------
    H : ndarray, shape (k, k)
        Symmetrized Hessian matrix.
    """
    k = len(beta)
    H = np.array([
        approx_fprime(
            beta,
            lambda b, j=j: approx_fprime(b, neg_log_lik, eps, *args)[j],
            eps,
        )
        for j in range(k)
    ])
    return (H + H.T) / 2


def profile_likelihood(neg_log_lik, beta_mle, profile_idx, grid, args=(),
                       method="BFGS"):
    """
    Compute the profile likelihood for a single parameter.

    For each value of beta[profile_idx] on the grid, maximizes
    the log-likelihood over all other parameters.

    Parameters
    ----------
    neg_log_lik : callable
    beta_mle : ndarray
        MLE estimates (used as starting values).
    profile_idx : int
        Index of the parameter to profile.
    grid : ndarray
        Grid of values for the profiled parameter.
    args : tuple

    Returns
    -------
    dict with keys:
        grid        : parameter values
        profile_ll  : profile log-likelihood at each grid point
        ci_95       : (lo, hi) 95% CI based on likelihood ratio; an end
                      is NaN when the grid does not reach it
    """
    beta_mle = np.asarray(beta_mle, dtype=float)
    grid = np.asarray(grid, dtype=float)
    k = len(beta_mle)
    other_idx = [j for j in range(k) if j != profile_idx]

    profile_ll = np.empty(len(grid))
    for i, val in enumerate(grid):
        if not other_idx:
            profile_ll[i] = -neg_log_lik(np.array([val]), *args)
            continue

        def _partial_nll(b_other, _val=val):
            b_full = np.empty(k)
            b_full[profile_idx] = _val
            b_full[other_idx] = b_other
            return neg_log_lik(b_full, *args)

        start_other = beta_mle[other_idx]
        res = minimize(_partial_nll, start_other, method=method,
                       options={"disp": False})
        profile_ll[i] = -res.fun

    # 95% CI: log-likelihood within 1.92 of maximum (chi2_1(0.95)/2).
    # An end still inside the interval at the edge of the grid is unknown.
    ll_max = profile_ll.max()
    in_ci = profile_ll >= (ll_max - 1.92)
    if in_ci.any():
        lo = grid[in_ci].min() if not in_ci[0] else np.nan
        hi = grid[in_ci].max() if not in_ci[-1] else np.nan
        ci = (lo, hi)
    else:
        ci = (np.nan, np.nan)

    return dict(grid=grid, profile_ll=profile_ll, ci_95=ci)
