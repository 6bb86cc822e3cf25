import numpy as np
import pytest

from analytics.mle import fit_mle, numerical_hessian, profile_likelihood
from analytics.utils import (add_const, coef_table, hc1_robust_se,
                             logsumexp_rows, ols_fit)


def _normal_nll(theta, x):
    mu, log_sigma = theta
    sigma = np.exp(log_sigma)
    return np.sum(np.log(sigma) + 0.5 * ((x - mu) / sigma) ** 2)


def test_add_const_vector_and_matrix():
    X = add_const(np.array([1.0, 2.0, 3.0]))
    assert X.shape == (3, 2)
    assert np.all(X[:, 0] == 1)
    assert add_const(np.ones((4, 2))).shape == (4, 3)


def test_ols_fit_recovers_exact_line():
    x = np.arange(10, dtype=float)
    y = 2.0 + 3.0 * x + np.tile([0.1, -0.1], 5)
    b, se, e, s2 = ols_fit(add_const(x), y)
    assert b == pytest.approx([2.0, 3.0], abs=0.05)
    assert e.sum() == pytest.approx(0.0, abs=1e-9)
    assert np.all(se > 0)


def test_ols_fit_rejects_too_few_rows():
    with pytest.raises(ValueError):
        ols_fit(np.ones((2, 2)), np.ones(2))


def test_hc1_matches_sandwich_by_hand():
    np.random.seed(1)
    x = np.random.normal(size=200)
    X = add_const(x)
    y = 1.0 + 0.5 * x + np.random.normal(size=200) * (1 + np.abs(x))
    _, se, e, _ = ols_fit(X, y)
    bread = np.linalg.inv(X.T @ X)
    meat = sum(ei ** 2 * np.outer(xi, xi) for xi, ei in zip(X, e))
    V = bread @ meat @ bread * 200 / 198
    robust = hc1_robust_se(X, e)
    assert robust == pytest.approx(np.sqrt(np.diag(V)))
    # Variance grows with |x|, so the robust slope SE exceeds the classical one
    assert robust[1] > se[1]


def test_logsumexp_rows_handles_large_values():
    V = np.array([[1000.0, 1000.0], [0.0, np.log(3.0)]])
    out = logsumexp_rows(V)
    assert out[0] == pytest.approx(1000.0 + np.log(2.0))
    assert out[1] == pytest.approx(np.log(4.0))


def test_coef_table_columns():
    table = coef_table(["a", "b"], [1.0, 0.0], [0.5, 1.0])
    assert list(table.columns) == ["estimate", "se", "z", "p_value",
                                   "ci_lo", "ci_hi"]
    assert table.loc["a", "z"] == pytest.approx(2.0)
    assert table.loc["b", "p_value"] == pytest.approx(1.0)
    assert table.loc["a", "ci_lo"] == pytest.approx(1.0 - 1.959964 * 0.5,
                                                    rel=1e-5)
    with pytest.raises(ValueError):
        coef_table(["a"], [1.0, 2.0], [1.0, 1.0])


def test_fit_mle_normal_mean_and_se():
    np.random.seed(0)
    x = np.random.normal(3.0, 2.0, 2000)
    res = fit_mle(_normal_nll, np.array([0.0, 0.0]), args=(x,),
                  track_path=True)
    assert res["beta"][0] == pytest.approx(x.mean(), abs=1e-2)
    sigma_hat = np.exp(res["beta"][1])
    assert sigma_hat == pytest.approx(x.std(), rel=1e-2)
    # SE of the mean is sigma / sqrt(n)
    assert res["se"][0] == pytest.approx(sigma_hat / np.sqrt(len(x)), rel=0.02)
    assert res["path"].shape[1] == 2


def test_numerical_hessian_of_quadratic():
    A = np.array([[2.0, 0.5], [0.5, 1.0]])

    def f(b):
        return 0.5 * b @ A @ b

    H = numerical_hessian(f, np.array([0.3, -0.2]))
    assert np.allclose(H, A, atol=1e-3)
    assert np.allclose(H, H.T)


def test_fit_mle_singular_hessian_gives_nan_se():
    def flat(b):
        return (b[0] - 1.0) ** 2

    res = fit_mle(flat, np.zeros(2), hess=lambda b: np.zeros((2, 2)))
    assert np.all(np.isnan(res["se"]))


def test_profile_likelihood_ci_contains_mle():
    np.random.seed(1)
    x = np.random.normal(1.0, 1.0, 500)
    fit = fit_mle(_normal_nll, np.array([0.0, 0.0]), args=(x,))
    grid = np.linspace(fit["beta"][0] - 0.3, fit["beta"][0] + 0.3, 121)
    prof = profile_likelihood(_normal_nll, fit["beta"], 0, grid, args=(x,))
    lo, hi = prof["ci_95"]
    assert lo < fit["beta"][0] < hi
    # Likelihood-ratio interval is close to mean +/- 1.96 SE here
    assert hi - lo == pytest.approx(2 * 1.96 * fit["se"][0], rel=0.15)


def test_profile_likelihood_open_end_is_nan():
    np.random.seed(1)
    x = np.random.normal(1.0, 1.0, 500)
    fit = fit_mle(_normal_nll, np.array([0.0, 0.0]), args=(x,))
    mu = fit["beta"][0]
    # Grid stops well short of the upper end of the interval
    grid = np.linspace(mu - 0.3, mu + 0.02, 65)
    prof = profile_likelihood(_normal_nll, fit["beta"], 0, grid, args=(x,))
    lo, hi = prof["ci_95"]
    assert grid[0] < lo < mu
    assert np.isnan(hi)
