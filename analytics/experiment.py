"""
Field Experiment Replication -- matching grants and charitable giving

Randomization checks, treatment-effect regressions (linear probability
and probit), comparisons among match-ratio arms, and the simulation
exercises (law of large numbers, central limit theorem) that accompany
the replication.
"""

import numpy as np
import pandas as pd
from scipy import stats
from scipy.optimize import minimize

from .utils import add_const, coef_table, hc1_robust_se, ols_fit

# Response rates in the original experiment (control vs any match)
P_CONTROL = 0.018
P_TREATMENT = 0.022


def welch_t_test(a, b):
    """
    Two-sample t-test without assuming equal variances.

    t = (mean_a - mean_b) / sqrt(s_a^2/n_a + s_b^2/n_b)

    Degrees of freedom follow Welch-Satterthwaite.

    Returns
    -------
    dict with keys: t_stat, df, p_value, diff
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    a, b = a[~np.isnan(a)], b[~np.isnan(b)]
    if len(a) < 2 or len(b) < 2:
        raise ValueError("each group needs at least two observations")
    va, vb = a.var(ddof=1) / len(a), b.var(ddof=1) / len(b)
    diff = a.mean() - b.mean()
    se = np.sqrt(va + vb)
    if se == 0:
        raise ValueError("both groups have zero variance")
    t_stat = diff / se
    df = (va + vb) ** 2 / (va ** 2 / (len(a) - 1) + vb ** 2 / (len(b) - 1))
    p_value = 2 * stats.t.sf(abs(t_stat), df)
    return dict(t_stat=t_stat, df=df, p_value=p_value, diff=diff)


def balance_table(df, treatment, covariates):
    """
    Randomization check: for each pre-treatment covariate compare the
    treatment and control means with a Welch t-test and with the OLS
    coefficient on the treatment dummy.

    Returns
    -------
    pandas.DataFrame indexed by covariate.
    """
    rows = []
    for cov in covariates:
        sub = df[[treatment, cov]].dropna()
        d = sub[treatment].to_numpy(dtype=float)
        x = sub[cov].to_numpy(dtype=float)
        tt = welch_t_test(x[d == 1], x[d == 0])
        b, se, _, _ = ols_fit(add_const(d), x)
        rows.append(dict(
            covariate=cov,
            mean_treatment=x[d == 1].mean(),
            mean_control=x[d == 0].mean(),
            t_stat=tt["t_stat"],
            t_p_value=tt["p_value"],
            ols_coef=b[1],
            ols_t_stat=b[1] / se[1],
            ols_p_value=2 * stats.t.sf(abs(b[1] / se[1]), len(x) - 2),
        ))
    return pd.DataFrame(rows).set_index("covariate")


def response_rates(df, outcome, group):
    """Mean outcome, count and standard error by group."""
    g = df.groupby(group)[outcome]
    out = pd.DataFrame(dict(mean=g.mean(), n=g.size(), sd=g.std(ddof=1)))
    out["se"] = out["sd"] / np.sqrt(out["n"])
    return out.drop(columns="sd")


def treatment_regression(df, outcome, regressors):
    """
    OLS of outcome on regressors (plus constant) with classical and HC1 SEs.

    Returns
    -------
    dict with keys: beta, se_classical, se_robust, n, table (robust SEs)
    """
    sub = df[[outcome, *regressors]].dropna()
    X = add_const(sub[list(regressors)].to_numpy(dtype=float))
    y = sub[outcome].to_numpy(dtype=float)
    b, se, e, _ = ols_fit(X, y)
    se_robust = hc1_robust_se(X, e)
    return dict(
        beta=b,
        se_classical=se,
        se_robust=se_robust,
        n=len(y),
        table=coef_table(["const", *regressors], b, se_robust),
    )


def _nll_probit(b, X, y):
    """Negative log-likelihood for probit."""
    p = np.clip(stats.norm.cdf(X @ b), 1e-12, 1 - 1e-12)
    return -np.sum(y * np.log(p) + (1 - y) * np.log(1 - p))


def fit_probit(X, y, start=None):
    """
    Probit MLE via BFGS optimization.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Design matrix (with constant).
    y : ndarray, shape (n,)
        Binary outcome (0/1).
    start : ndarray or None
        Starting values.

    Returns
    -------
    dict with keys:
        beta     : MLE coefficient vector
        se       : SEs from the expected information matrix (NaN when
                   the outcome is separated)
        p_hat    : predicted probabilities
        nll      : negative log-likelihood at optimum
        converged: bool
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    if not np.isin(y, [0, 1]).all():
        raise ValueError("probit outcome must be 0/1")
    if start is None:
        start = np.zeros(X.shape[1])
    res = minimize(_nll_probit, start, args=(X, y), method="BFGS")
    xb = X @ res.x
    p_hat = stats.norm.cdf(xb)
    # Expected information: X' diag(phi^2 / (Phi (1 - Phi))) X
    pc = np.clip(p_hat, 1e-12, 1 - 1e-12)
    w = stats.norm.pdf(xb) ** 2 / (pc * (1 - pc))
    try:
        with np.errstate(invalid="ignore"):
            se = np.sqrt(np.diag(np.linalg.inv(X.T @ (X * w[:, None]))))
    except np.linalg.LinAlgError:
        # Separated outcome: information matrix is singular
        se = np.full(X.shape[1], np.nan)
    return dict(beta=res.x, se=se, p_hat=p_hat, nll=res.fun,
                converged=res.success)


def probit_ame(X, beta, coef_idx=1):
    """
    Average Marginal Effect for a probit model.

    AME = mean( beta_j * phi(X @ beta) )
    """
    return np.mean(beta[coef_idx] * stats.norm.pdf(X @ beta))


def match_ratio_differences(df, outcome, ratio_col="ratio",
                            ratios=(1, 2, 3)):
    """
    Pairwise response-rate differences among match-ratio arms,
    computed from raw means and from a regression on ratio dummies
    (1:1 as the omitted arm). Only treated rows (ratio in `ratios`) are used.

    Returns
    -------
    pandas.DataFrame indexed by comparison, e.g. "2:1 - 1:1".
    """
    sub = df[df[ratio_col].isin(ratios)]
    means = sub.groupby(ratio_col)[outcome].mean()
    missing = [r for r in ratios if r not in means.index]
    if missing:
        raise ValueError(f"no observations for ratio(s) {missing}")

    dummies = []
    for r in ratios[1:]:
        col = f"ratio{r}"
        sub = sub.assign(**{col: (sub[ratio_col] == r).astype(float)})
        dummies.append(col)
    reg = treatment_regression(sub, outcome, dummies)
    coef = dict(zip(ratios, [0.0, *reg["beta"][1:]]))

    rows = []
    for i, hi in enumerate(ratios):
        for lo in ratios[:i]:
            rows.append(dict(
                comparison=f"{hi}:1 - {lo}:1",
                raw_diff=means[hi] - means[lo],
                regression_diff=coef[hi] - coef[lo],
            ))
    return pd.DataFrame(rows).set_index("comparison")


def law_of_large_numbers(p_control=P_CONTROL, p_treat=P_TREATMENT,
                         n_draws=10000, seed=None):
    """
    Cumulative average of paired (treatment - control) Bernoulli draws;
    converges to p_treat - p_control.
    """
    if seed is not None:
        np.random.seed(seed)
    control = np.random.binomial(1, p_control, n_draws)
    treat = np.random.binomial(1, p_treat, n_draws)
    diffs = treat - control
    return dict(
        diffs=diffs,
        cumulative_mean=np.cumsum(diffs) / np.arange(1, n_draws + 1),
        true_diff=p_treat - p_control,
    )


def central_limit_draws(p_control=P_CONTROL, p_treat=P_TREATMENT,
                        sample_sizes=(50, 200, 500, 1000), n_reps=1000,
                        seed=None):
    """
    Sampling distribution of the difference in sample means for each
    sample size.

    Returns
    -------
    dict mapping sample size -> ndarray of n_reps mean differences
    """
    if seed is not None:
        np.random.seed(seed)
    out = {}
    for n in sample_sizes:
        control = np.random.binomial(1, p_control, (n_reps, n)).mean(axis=1)
        treat = np.random.binomial(1, p_treat, (n_reps, n)).mean(axis=1)
        out[n] = treat - control
    return out


def simulate_charitable_giving(n=50000, seed=None):
    """
    Simulate a direct-mail matching-grant experiment.

    One third of letters are controls; the rest offer a 1:1, 2:1 or 3:1
    match (equal thirds) with a match threshold of $25k, $50k, $100k or
    unstated. Response is ~1.8% in control and ~2.2% under any match,
    with no difference across ratios.

    Returns
    -------
    pandas.DataFrame with columns treatment, control, ratio, ratio2,
    ratio3, size, ask, gave, amount, mrm2, hpa, freq, female
    """
    if seed is not None:
        np.random.seed(seed)
    treatment = (np.random.uniform(size=n) < 2 / 3).astype(int)
    ratio = np.where(treatment == 1, np.random.choice([1, 2, 3], n), 0)
    size = np.where(treatment == 1,
                    np.random.choice(["$25,000", "$50,000", "$100,000",
                                      "Unstated"], n),
                    "Control")
    ask = np.where(treatment == 1,
                   np.random.choice(["1x", "1.25x", "1.50x"], n), "Control")

    # Pre-treatment donor history
    mrm2 = np.random.gamma(2.0, 6.5, n).round()
    hpa = np.round(np.random.lognormal(3.6, 0.8, n), 2)
    freq = np.random.poisson(8.0, n)
    female = (np.random.uniform(size=n) < 0.28).astype(int)

    p = np.where(treatment == 1, P_TREATMENT, P_CONTROL)
    gave = (np.random.uniform(size=n) < p).astype(int)
    amount = np.where(gave == 1,
                      np.round(np.random.lognormal(3.4, 0.9, n), 2), 0.0)
    return pd.DataFrame(dict(
        treatment=treatment, control=1 - treatment, ratio=ratio,
        ratio2=(ratio == 2).astype(int), ratio3=(ratio == 3).astype(int),
        size=size, ask=ask, gave=gave, amount=amount,
        mrm2=mrm2, hpa=hpa, freq=freq, female=female,
    ))
