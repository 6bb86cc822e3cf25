"""
Count Data -- Poisson and Negative Binomial regression from scratch

Poisson:  y_i ~ Poisson(lambda_i),  lambda_i = exp(x_i' beta)
NB2:      y_i ~ NegBin(mu_i, alpha), Var(y_i) = mu_i + alpha * mu_i^2

Both are fitted by maximum likelihood through analytics.mle.fit_mle.
"""

import numpy as np
import pandas as pd
from scipy import stats
from scipy.special import digamma, gammaln

from .mle import fit_mle
from .utils import coef_table

# Linear index bound: exp(30) ~ 1e13 keeps lambda finite
MAX_ETA = 30.0

# Search range for NB2 log(alpha); alpha below exp(-10) is treated as zero
LOG_ALPHA_BOUNDS = (-10.0, 10.0)

REGIONS = ("Midwest", "Northeast", "Northwest", "South", "Southwest")
ROOM_TYPES = ("Entire home/apt", "Private room", "Shared room")


def poisson_log_likelihood(lam, y):
    """
    Poisson log-likelihood: sum_i ( -lambda + y_i log(lambda) - log(y_i!) ).

    `lam` may be a scalar rate or one rate per observation.
    Returns -inf for non-positive rates.
    """
    y = np.asarray(y, dtype=float)
    lam = np.broadcast_to(np.asarray(lam, dtype=float), y.shape)
    if np.any(lam <= 0):
        return -np.inf
    return float(np.sum(-lam + y * np.log(lam) - gammaln(y + 1)))


def poisson_rate_mle(y):
    """Closed-form MLE of a constant Poisson rate: the sample mean."""
    y = _check_counts(y)
    return float(y.mean())


def _check_counts(y):
    y = np.asarray(y, dtype=float)
    if y.size == 0:
        raise ValueError("empty outcome vector")
    if np.any(y < 0) or np.any(y != np.round(y)):
        raise ValueError("counts must be non-negative integers")
    return y


def _eta(beta, X):
    return np.clip(X @ beta, -MAX_ETA, MAX_ETA)


def poisson_nll(beta, X, y):
    """Negative Poisson log-likelihood with lambda = exp(X beta)."""
    eta = _eta(beta, X)
    return -np.sum(y * eta - np.exp(eta) - gammaln(y + 1))


def poisson_grad(beta, X, y):
    return -X.T @ (y - np.exp(_eta(beta, X)))


def poisson_hess(beta, X, y):
    lam = np.exp(_eta(beta, X))
    return X.T @ (X * lam[:, None])


def poisson_regression(X, y, names=None, start=None):
    """
    Poisson regression MLE.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Design matrix (with constant).
    y : ndarray, shape (n,)
        Non-negative integer counts.
    names : list of str or None
    start : ndarray or None
        Starting values. Defaults to zeros.

    Returns
    -------
    dict with keys:
        beta      : MLE coefficient vector
        se        : SEs from the inverse of X' diag(lambda) X
        log_lik   : log-likelihood at optimum
        mu_hat    : fitted means
        converged : bool
        table     : pandas.DataFrame coefficient table
    """
    X = np.asarray(X, dtype=float)
    y = _check_counts(y)
    k = X.shape[1]
    names = list(names) if names is not None else [f"x{j}" for j in range(k)]
    if start is None:
        start = np.zeros(k)

    res = fit_mle(poisson_nll, start, args=(X, y), method="trust-exact",
                  jac=poisson_grad, hess=poisson_hess)
    return dict(
        beta=res["beta"],
        se=res["se"],
        log_lik=-res["nll"],
        mu_hat=np.exp(_eta(res["beta"], X)),
        converged=res["converged"],
        table=coef_table(names, res["beta"], res["se"]),
    )


def nb2_nll(theta, X, y):
    """
    Negative NB2 log-likelihood; theta = (beta, log_alpha).

    ll_i = lgamma(y + 1/a) - lgamma(1/a) - lgamma(y + 1)
           - (1/a) log(1 + a mu) + y log(a mu / (1 + a mu))
    """
    beta, log_alpha = theta[:-1], np.clip(theta[-1], -20.0, 20.0)
    alpha = np.exp(log_alpha)
    r = 1.0 / alpha
    eta = _eta(beta, X)
    a_mu = alpha * np.exp(eta)
    ll = (gammaln(y + r) - gammaln(r) - gammaln(y + 1)
          - r * np.log1p(a_mu)
          + y * (log_alpha + eta - np.log1p(a_mu)))
    return -np.sum(ll)


def nb2_grad(theta, X, y):
    """Gradient of nb2_nll with respect to (beta, log_alpha)."""
    beta, log_alpha = theta[:-1], np.clip(theta[-1], -20.0, 20.0)
    alpha = np.exp(log_alpha)
    r = 1.0 / alpha
    mu = np.exp(_eta(beta, X))
    a_mu = alpha * mu
    d_eta = (y - mu) / (1 + a_mu)
    d_log_alpha = (r * (np.log1p(a_mu) - digamma(y + r) + digamma(r))
                   + d_eta)
    return -np.append(X.T @ d_eta, d_log_alpha.sum())


def negative_binomial_regression(X, y, names=None, start=None):
    """
    NB2 regression MLE, starting from the Poisson estimates.

    log_alpha is bounded to LOG_ALPHA_BOUNDS. A fit that ends on the lower
    bound is a boundary solution (no overdispersion, alpha ~ 0): the beta
    SEs then come from the beta block of the Hessian and alpha_se is NaN.

    Returns
    -------
    dict with keys:
        beta, se  : coefficient estimates and SEs
        alpha     : overdispersion parameter
        alpha_se  : delta-method SE of alpha
        boundary  : True when log_alpha sits on its lower bound
        log_lik   : log-likelihood at optimum
        converged : bool
        table     : coefficient table (last row is log_alpha)
    """
    X = np.asarray(X, dtype=float)
    y = _check_counts(y)
    k = X.shape[1]
    names = list(names) if names is not None else [f"x{j}" for j in range(k)]
    if start is None:
        start = np.append(poisson_regression(X, y)["beta"], 0.0)

    bounds = [(None, None)] * k + [LOG_ALPHA_BOUNDS]
    res = fit_mle(nb2_nll, start, args=(X, y), method="L-BFGS-B",
                  jac=nb2_grad, bounds=bounds)
    theta, se = res["beta"], res["se"]
    boundary = bool(theta[-1] <= LOG_ALPHA_BOUNDS[0] + 1e-6)
    if boundary:
        try:
            beta_cov = np.linalg.inv(res["hessian"][:k, :k])
            with np.errstate(invalid="ignore"):
                se = np.append(np.sqrt(np.diag(beta_cov)), np.nan)
        except np.linalg.LinAlgError:
            se = np.full(k + 1, np.nan)
    alpha = float(np.exp(theta[-1]))
    return dict(
        beta=theta[:-1],
        se=se[:-1],
        alpha=alpha,
        alpha_se=float(alpha * se[-1]),
        boundary=boundary,
        log_lik=-res["nll"],
        converged=res["converged"],
        table=coef_table(names + ["log_alpha"], theta, se),
    )


def counterfactual_effect(X, beta, column):
    """
    Average change in the predicted count when a binary regressor
    is switched from 0 to 1 for every observation.

    Returns
    -------
    dict with keys:
        y_pred_0, y_pred_1 : predicted counts under each scenario
        effect             : mean(y_pred_1 - y_pred_0)
        ratio              : mean(y_pred_1) / mean(y_pred_0)
    """
    X = np.asarray(X, dtype=float)
    X_0, X_1 = X.copy(), X.copy()
    X_0[:, column] = 0.0
    X_1[:, column] = 1.0
    y_0 = np.exp(_eta(beta, X_0))
    y_1 = np.exp(_eta(beta, X_1))
    return dict(
        y_pred_0=y_0,
        y_pred_1=y_1,
        effect=float(np.mean(y_1 - y_0)),
        ratio=float(y_1.mean() / y_0.mean()),
    )


def likelihood_ratio_test(ll_restricted, ll_full, df=1, boundary=False):
    """
    LR test: 2 (ll_full - ll_restricted) ~ chi2(df).

    With boundary=True the p-value is halved (testing a variance-type
    parameter on the edge of its space, e.g. NB alpha = 0).
    """
    stat = max(2.0 * (ll_full - ll_restricted), 0.0)
    p_value = stats.chi2.sf(stat, df)
    if boundary:
        p_value /= 2
    return dict(stat=stat, df=df, p_value=float(p_value))


# ---------------------------------------------------------------------------
# Simulated datasets
# ---------------------------------------------------------------------------

def simulate_patents(n=1500, seed=None):
    """
    Simulate firm patent counts.

    Customers of the software vendor are over-represented in the
    Northeast and among younger firms, so a raw comparison of means is
    confounded by region and age. True effect of being a customer on
    log(lambda): 0.2.

    Returns
    -------
    pandas.DataFrame with columns patents, region, age, iscustomer
    """
    if seed is not None:
        np.random.seed(seed)
    region = np.random.choice(REGIONS, n, p=[0.16, 0.40, 0.12, 0.16, 0.16])
    age = np.round(np.random.uniform(9, 49, n), 1)
    p_cust = 1 / (1 + np.exp(-(-1.0 + 1.2 * (region == "Northeast")
                               - 0.02 * (age - 26))))
    iscustomer = (np.random.uniform(size=n) < p_cust).astype(int)
    age_d = age / 10
    log_lam = (-0.5 + 1.5 * age_d - 0.3 * age_d ** 2
               + 0.05 * (region == "Northeast") - 0.05 * (region == "South")
               + 0.2 * iscustomer)
    patents = np.random.poisson(np.exp(log_lam))
    return pd.DataFrame(dict(patents=patents, region=region, age=age,
                             iscustomer=iscustomer))


def patent_design(df, reference_region="Midwest"):
    """
    Design matrix for the patent model: constant, age and age^2 (in
    decades), region dummies, customer indicator.
    """
    age_d = df["age"].to_numpy(dtype=float) / 10
    cols = [np.ones(len(df)), age_d, age_d ** 2]
    names = ["const", "age", "age_sq"]
    for region in sorted(df["region"].unique()):
        if region == reference_region:
            continue
        cols.append((df["region"] == region).to_numpy(dtype=float))
        names.append(f"region_{region}")
    cols.append(df["iscustomer"].to_numpy(dtype=float))
    names.append("iscustomer")
    return np.column_stack(cols), names


def simulate_listings(n=2000, alpha=0.6, seed=None):
    """
    Simulate short-term rental listings with overdispersed review counts
    (NB2 with dispersion `alpha`), used as a proxy for bookings.

    Returns
    -------
    pandas.DataFrame with columns number_of_reviews, days, room_type,
    bedrooms, bathrooms, price, review_scores_cleanliness,
    instant_bookable
    """
    if seed is not None:
        np.random.seed(seed)
    days = np.random.randint(30, 3000, n)
    room_type = np.random.choice(ROOM_TYPES, n, p=[0.5, 0.45, 0.05])
    bedrooms = np.random.choice([1, 2, 3, 4], n, p=[0.6, 0.25, 0.1, 0.05])
    bathrooms = np.where(bedrooms > 2, 2, 1)
    price = np.round(np.exp(np.random.normal(4.8, 0.5, n)))
    cleanliness = np.random.choice(np.arange(5, 11), n,
                                   p=[0.02, 0.03, 0.1, 0.2, 0.3, 0.35])
    instant = np.random.binomial(1, 0.2, n)

    log_mu = (-1.5 + 0.5 * np.log(days)
              - 0.1 * (room_type == "Private room")
              - 0.3 * (room_type == "Shared room")
              + 0.05 * bedrooms - 0.1 * (bathrooms - 1)
              - 0.05 * np.log(price)
              + 0.1 * (cleanliness - 8) + 0.35 * instant)
    mu = np.exp(log_mu)
    # Gamma-Poisson mixture gives Var = mu + alpha mu^2
    lam = np.random.gamma(1 / alpha, alpha * mu)
    reviews = np.random.poisson(lam)
    return pd.DataFrame(dict(
        number_of_reviews=reviews, days=days, room_type=room_type,
        bedrooms=bedrooms, bathrooms=bathrooms, price=price,
        review_scores_cleanliness=cleanliness, instant_bookable=instant,
    ))


def listing_design(df, reference_room="Entire home/apt"):
    """
    Design matrix for the listings model. Rows with missing values in
    any used column are dropped.

    Returns
    -------
    X, y, names
    """
    used = ["number_of_reviews", "days", "room_type", "bedrooms",
            "bathrooms", "price", "review_scores_cleanliness",
            "instant_bookable"]
    df = df.dropna(subset=used)
    df = df[(df["days"] > 0) & (df["price"] > 0)]
    cols = [np.ones(len(df)), np.log(df["days"].to_numpy(dtype=float))]
    names = ["const", "log_days"]
    for room in sorted(df["room_type"].unique()):
        if room == reference_room:
            continue
        cols.append((df["room_type"] == room).to_numpy(dtype=float))
        names.append("room_" + room.lower().replace(" ", "_").replace("/", "_"))
    cols += [
        df["bedrooms"].to_numpy(dtype=float),
        df["bathrooms"].to_numpy(dtype=float),
        np.log(df["price"].to_numpy(dtype=float)),
        df["review_scores_cleanliness"].to_numpy(dtype=float) - 8,
        df["instant_bookable"].to_numpy(dtype=float),
    ]
    names += ["bedrooms", "bathrooms", "log_price", "cleanliness_c",
              "instant_bookable"]
    y = df["number_of_reviews"].to_numpy(dtype=float)
    return np.column_stack(cols), y, names
