"""
Shared utility functions used across the estimator modules.
"""

import numpy as np
import pandas as pd
from scipy import stats


def ols_fit(X, y):
    """
    OLS estimation via least squares.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Design matrix (should include a constant column if an intercept is desired).
    y : ndarray, shape (n,)
        Outcome vector.

    Returns
    -------
    b : ndarray, shape (k,)
        Coefficient estimates  beta_hat = (X'X)^{-1} X'y.
    se : ndarray, shape (k,)
        Homoskedastic standard errors.
    e : ndarray, shape (n,)
        Residuals  y - X @ b.
    s2 : float
        Estimated error variance  e'e / (n - k).
    """
    n, k = X.shape
    if n <= k:
        raise ValueError(f"need more observations than regressors (n={n}, k={k})")
    b = np.linalg.lstsq(X, y, rcond=None)[0]
    e = y - X @ b
    s2 = (e @ e) / (n - k)
    se = np.sqrt(np.diag(s2 * np.linalg.inv(X.T @ X)))
    return b, se, e, s2


def hc1_robust_se(X, residuals):
    """
    HC1 (Huber-White) heteroskedasticity-consistent standard errors.

    V_HC1 = (n/(n-k)) * (X'X)^{-1} * [sum_i e_hat_i^2 * x_i x_i'] * (X'X)^{-1}
    """
    n, k = X.shape
    esq = residuals ** 2
    meat = (X.T * esq) @ X
    bread = np.linalg.inv(X.T @ X)
    V_hc1 = bread @ meat @ bread * (n / (n - k))
    return np.sqrt(np.diag(V_hc1))


def add_const(x):
    """
    Prepend a column of ones (intercept) to the design matrix.

    Parameters
    ----------
    x : ndarray
        1-d array or 2-d matrix of regressors.

    Returns
    -------
    X : ndarray, shape (n, k+1)
        Design matrix with leading ones column.
    """
    x = np.asarray(x, dtype=float)
    x = np.atleast_2d(x).T if x.ndim == 1 else x
    return np.column_stack([np.ones(x.shape[0]), x])


def logsumexp_rows(V, axis=-1):
    """
    log(sum(exp(V))) along `axis`, shifted by the max so that large
    utilities never overflow.
    """
    V = np.asarray(V, dtype=float)
    m = np.max(V, axis=axis, keepdims=True)
    out = m + np.log(np.sum(np.exp(V - m), axis=axis, keepdims=True))
    return np.squeeze(out, axis=axis)


def coef_table(names, est, se, level=0.95):
    """
    Coefficient table with Wald z statistics and normal-approximation CIs.

    Parameters
    ----------
    names : sequence of str
    est : ndarray, shape (k,)
    se : ndarray, shape (k,)
    level : float
        Confidence level of the interval.

    Returns
    -------
    pandas.DataFrame indexed by parameter name with columns
    estimate, se, z, p_value, ci_lo, ci_hi.
    """
    est = np.asarray(est, dtype=float)
    se = np.asarray(se, dtype=float)
    if len(names) != len(est) or len(est) != len(se):
        raise ValueError("names, est and se must have the same length")
    crit = stats.norm.ppf(0.5 + level / 2)
    with np.errstate(divide="ignore", invalid="ignore"):
        z = est / se
    p = 2 * (1 - stats.norm.cdf(np.abs(z)))
    return pd.DataFrame(
        dict(
            estimate=est,
            se=se,
            z=z,
            p_value=p,
            ci_lo=est - crit * se,
            ci_hi=est + crit * se,
        ),
        index=pd.Index(list(names), name="parameter"),
    )
