"""
Multinomial Logit -- conjoint choice models from scratch

A choice panel stacks the design as X[r, t, j, :] (respondent r, task t,
alternative j) with a one-hot choice indicator y[r, t, :]. Choice
probabilities are a softmax of the linear utilities across alternatives
within each task; all log-probabilities go through log-sum-exp so that
large utilities cannot overflow.
"""

import itertools

import numpy as np
import pandas as pd

from .mle import fit_mle, profile_likelihood
from .utils import coef_table, logsumexp_rows

# True part-worths used by simulate_conjoint
TRUE_BETA = {"brand_N": 1.0, "brand_P": 0.5, "ads": -0.8, "price": -0.1}
BRANDS = ("N", "P", "H")
PRICES = np.arange(8, 33, 4)


def build_panel(df, attributes, resp_col="resp", task_col="task",
                choice_col="choice"):
    """
    Pivot a long choice data frame (one row per alternative) into a panel.

    Parameters
    ----------
    df : pandas.DataFrame
    attributes : list of str
        Numeric attribute columns, in the order of the coefficient vector.
    resp_col, task_col, choice_col : str

    Returns
    -------
    dict with keys:
        X     : ndarray, shape (R, T, J, K)
        y     : ndarray, shape (R, T, J)
        names : list of attribute names
    """
    missing = [c for c in [resp_col, task_col, choice_col, *attributes]
               if c not in df.columns]
    if missing:
        raise ValueError(f"missing columns: {missing}")
    if not df[choice_col].isin([0, 1]).all():
        raise ValueError(f"{choice_col} must be coded 0/1")

    df = df.sort_values([resp_col, task_col], kind="mergesort")
    keys = [resp_col, task_col]
    alts_per_task = df.groupby(keys, sort=True).size()
    if alts_per_task.nunique() != 1:
        raise ValueError("every task must offer the same number of alternatives")
    tasks_per_resp = alts_per_task.groupby(level=0).size()
    if tasks_per_resp.nunique() != 1:
        raise ValueError("every respondent must complete the same number of tasks")
    chosen = df.groupby(keys, sort=True)[choice_col].sum()
    if not (chosen == 1).all():
        bad = chosen[chosen != 1].index.tolist()[:5]
        raise ValueError(f"tasks without exactly one choice: {bad}")

    R = len(tasks_per_resp)
    T = int(tasks_per_resp.iloc[0])
    J = int(alts_per_task.iloc[0])
    K = len(attributes)
    X = df[list(attributes)].to_numpy(dtype=float).reshape(R, T, J, K)
    y = df[choice_col].to_numpy(dtype=float).reshape(R, T, J)
    return dict(X=X, y=y, names=list(attributes))


def encode_conjoint(df, brand_col="brand", ad_col="ad", price_col="price",
                    reference="H"):
    """
    Dummy-code brand (against `reference`) and ads; keep price as is.

    Returns
    -------
    encoded : pandas.DataFrame
        Copy of df with brand_<level>, ads and price columns.
    names : list of str
        Attribute names in coefficient order.
    """
    levels = sorted(df[brand_col].unique(), key=str)
    if reference not in levels:
        raise ValueError(f"reference brand {reference!r} not in data")
    out = df.copy()
    names = []
    for level in levels:
        if level == reference:
            continue
        col = f"brand_{level}"
        out[col] = (out[brand_col] == level).astype(float)
        names.append(col)
    ads = out[ad_col]
    if not pd.api.types.is_numeric_dtype(ads):
        ads = ads.str.lower().map({"yes": 1.0, "no": 0.0})
        if ads.isna().any():
            raise ValueError(f"{ad_col} must be Yes/No or 0/1")
    out["ads"] = ads.astype(float)
    out["price"] = out[price_col].astype(float)
    names += ["ads", "price"]
    return out, names


def utilities(beta, X):
    """Deterministic utility V = X @ beta, shape (R, T, J)."""
    return X @ np.asarray(beta, dtype=float)


def choice_probabilities(beta, X):
    """Softmax of utilities across the alternative axis."""
    V = utilities(beta, X)
    V = V - V.max(axis=-1, keepdims=True)
    expV = np.exp(V)
    return expV / expV.sum(axis=-1, keepdims=True)


def log_likelihood(beta, X, y):
    """Sum over tasks of the log-probability of the chosen alternative."""
    V = utilities(beta, X)
    log_p = V - logsumexp_rows(V, axis=-1)[..., None]
    return float(np.sum(y * log_p))


def neg_log_likelihood(beta, X, y):
    """Objective for the optimizer."""
    return -log_likelihood(beta, X, y)


def gradient(beta, X, y):
    """Gradient of the negative log-likelihood: -sum (y - p) x."""
    p = choice_probabilities(beta, X)
    return -np.einsum("rtj,rtjk->k", y - p, X)


def hessian(beta, X, y):
    """
    Hessian of the negative log-likelihood.

    H = sum_tasks [ sum_j p_j x_j x_j' - xbar xbar' ],  xbar = sum_j p_j x_j
    """
    p = choice_probabilities(beta, X)
    xbar = np.einsum("rtj,rtjk->rtk", p, X)
    second = np.einsum("rtj,rtjk,rtjl->kl", p, X, X)
    return second - np.einsum("rtk,rtl->kl", xbar, xbar)


def fit_mnl(panel, start=None, method="trust-exact"):
    """
    MNL by maximum likelihood.

    Parameters
    ----------
    panel : dict
        Output of build_panel.
    start : ndarray or None
        Starting values. Defaults to zeros.
    method : str
        scipy.optimize.minimize method; the default uses the analytic
        Hessian.

    Returns
    -------
    dict with keys:
        beta, se, ci_lo, ci_hi : estimates, SEs and normal 95% CIs
        log_lik   : log-likelihood at the MLE
        null_ll   : log-likelihood of equal choice shares
        pseudo_r2 : McFadden's 1 - log_lik / null_ll
        converged : bool
        table     : pandas.DataFrame coefficient table
    """
    X, y, names = panel["X"], panel["y"], panel["names"]
    if start is None:
        start = np.zeros(X.shape[-1])
    res = fit_mle(neg_log_likelihood, start, args=(X, y), method=method,
                  jac=gradient, hess=hessian)
    table = coef_table(names, res["beta"], res["se"])

    n_tasks = y.shape[0] * y.shape[1]
    null_ll = n_tasks * np.log(1.0 / y.shape[2])
    log_lik = -res["nll"]
    return dict(
        beta=res["beta"],
        se=res["se"],
        cov=res["cov"],
        ci_lo=table["ci_lo"].to_numpy(),
        ci_hi=table["ci_hi"].to_numpy(),
        log_lik=log_lik,
        null_ll=null_ll,
        pseudo_r2=1 - log_lik / null_ll,
        converged=res["converged"],
        table=table,
    )


def price_profile_ci(panel, beta_mle, se=None, price_name="price", n_se=4.0,
                     n_grid=41, max_widen=4):
    """
    Likelihood-ratio 95% CI for the price coefficient.

    The grid spans beta_price +/- n_se standard errors (from the analytic
    Hessian when `se` is not given) and is doubled in width while either
    end of the interval lies outside it.
    """
    X, y = panel["X"], panel["y"]
    beta_mle = np.asarray(beta_mle, dtype=float)
    idx = panel["names"].index(price_name)
    if se is None:
        with np.errstate(invalid="ignore"):
            se = np.sqrt(np.diag(np.linalg.inv(hessian(beta_mle, X, y))))
    half_width = n_se * np.asarray(se, dtype=float)[idx]
    if not np.isfinite(half_width) or half_width <= 0:
        raise ValueError("price standard error must be positive and finite")

    for _ in range(max_widen + 1):
        grid = np.linspace(beta_mle[idx] - half_width,
                           beta_mle[idx] + half_width, n_grid)
        prof = profile_likelihood(neg_log_likelihood, beta_mle, idx, grid,
                                  args=(X, y))
        if np.all(np.isfinite(prof["ci_95"])):
            break
        half_width *= 2
    return prof


def willingness_to_pay(beta, names, price_name="price"):
    """
    Dollar value of each non-price attribute: -beta_attr / beta_price.
    """
    beta = np.asarray(beta, dtype=float)
    idx = list(names).index(price_name)
    b_price = beta[idx]
    if b_price == 0:
        raise ValueError("price coefficient is zero; WTP is undefined")
    return {
        name: -beta[i] / b_price
        for i, name in enumerate(names) if i != idx
    }


def market_shares(beta, profiles):
    """
    Predicted shares for a single choice set of product profiles.

    Parameters
    ----------
    beta : ndarray, shape (K,)
    profiles : ndarray, shape (J, K)

    Returns
    -------
    ndarray, shape (J,) summing to 1
    """
    profiles = np.atleast_2d(np.asarray(profiles, dtype=float))
    return choice_probabilities(beta, profiles[None, None])[0, 0]


def simulate_conjoint(n_resp=100, n_tasks=10, n_alts=3, beta_true=None,
                      seed=None):
    """
    Simulate a streaming-service conjoint experiment.

    Each task shows `n_alts` distinct profiles drawn from the full
    factorial of brand (N, P, H) x ads (Yes, No) x price ($8-$32 in $4
    steps). Utility = part-worths + Gumbel(0, 1) error; the respondent
    chooses the alternative with the highest utility.

    Returns
    -------
    pandas.DataFrame with columns resp, task, brand, ad, price, choice
    """
    if seed is not None:
        np.random.seed(seed)
    beta_true = dict(TRUE_BETA if beta_true is None else beta_true)

    profiles = list(itertools.product(BRANDS, ("Yes", "No"), PRICES))
    if n_alts > len(profiles):
        raise ValueError(f"n_alts cannot exceed {len(profiles)} profiles")

    def _utility(brand, ad, price):
        return (beta_true.get(f"brand_{brand}", 0.0)
                + beta_true["ads"] * (ad == "Yes")
                + beta_true["price"] * price)

    rows = []
    for r in range(1, n_resp + 1):
        for t in range(1, n_tasks + 1):
            picks = np.random.choice(len(profiles), n_alts, replace=False)
            shown = [profiles[i] for i in picks]
            u = np.array([_utility(*p) for p in shown])
            u += np.random.gumbel(0, 1, n_alts)
            best = int(np.argmax(u))
            for j, (brand, ad, price) in enumerate(shown):
                rows.append(dict(resp=r, task=t, brand=brand, ad=ad,
                                 price=int(price), choice=int(j == best)))
    return pd.DataFrame(rows)
