import numpy as np
import pandas as pd
import pytest
from scipy import stats

from analytics import experiment as ex
from analytics.utils import add_const


@pytest.fixture(scope="module")
def letters():
    return ex.simulate_charitable_giving(20000, seed=5)


def test_simulated_experiment_design(letters):
    assert {"treatment", "control", "ratio", "ratio2", "ratio3", "size",
            "ask", "gave", "amount", "mrm2", "hpa", "freq",
            "female"} <= set(letters.columns)
    assert letters["treatment"].mean() == pytest.approx(2 / 3, abs=0.02)
    assert (letters.loc[letters["treatment"] == 0, "ratio"] == 0).all()
    assert set(letters.loc[letters["treatment"] == 1, "ratio"]) == {1, 2, 3}
    assert (letters.loc[letters["gave"] == 0, "amount"] == 0).all()
    assert (letters["control"] + letters["treatment"] == 1).all()


def test_welch_t_test_matches_scipy():
    np.random.seed(2)
    a = np.random.normal(0.0, 1.0, 80)
    b = np.random.normal(0.3, 2.0, 120)
    ours = ex.welch_t_test(a, b)
    ref = stats.ttest_ind(a, b, equal_var=False)
    assert ours["t_stat"] == pytest.approx(ref.statistic)
    assert ours["p_value"] == pytest.approx(ref.pvalue)
    assert ours["diff"] == pytest.approx(a.mean() - b.mean())


def test_welch_t_test_rejects_degenerate_input():
    with pytest.raises(ValueError):
        ex.welch_t_test([1.0], [1.0, 2.0])
    with pytest.raises(ValueError):
        ex.welch_t_test([1.0, 1.0], [2.0, 2.0])


def test_balance_table_regression_equals_mean_difference(letters):
    table = ex.balance_table(letters, "treatment", ["mrm2", "freq"])
    assert list(table.index) == ["mrm2", "freq"]
    for cov in ["mrm2", "freq"]:
        row = table.loc[cov]
        assert row["ols_coef"] == pytest.approx(
            row["mean_treatment"] - row["mean_control"])
        # Randomized assignment: no covariate should be wildly imbalanced
        assert row["t_p_value"] > 0.001
        assert np.sign(row["t_stat"]) == np.sign(row["ols_t_stat"])


def test_response_rates(letters):
    rates = ex.response_rates(letters, "gave", "treatment")
    assert list(rates.columns) == ["mean", "n", "se"]
    assert rates["n"].sum() == len(letters)
    assert rates.loc[1, "mean"] == pytest.approx(
        letters.loc[letters["treatment"] == 1, "gave"].mean())


def test_treatment_regression_is_difference_in_means(letters):
    reg = ex.treatment_regression(letters, "gave", ["treatment"])
    means = letters.groupby("treatment")["gave"].mean()
    assert reg["beta"][1] == pytest.approx(means[1] - means[0])
    assert reg["n"] == len(letters)
    assert np.all(reg["se_robust"] > 0)
    assert list(reg["table"].index) == ["const", "treatment"]


def test_fit_probit_recovers_coefficients():
    np.random.seed(9)
    x = np.random.normal(size=5000)
    X = add_const(x)
    y = (-0.5 + 1.0 * x + np.random.normal(size=5000) > 0).astype(float)
    fit = ex.fit_probit(X, y)
    assert fit["beta"] == pytest.approx([-0.5, 1.0], abs=0.1)
    assert np.all(fit["se"] > 0)
    ame = ex.probit_ame(X, fit["beta"])
    assert 0 < ame < fit["beta"][1]


def test_fit_probit_requires_binary_outcome():
    with pytest.raises(ValueError):
        ex.fit_probit(np.ones((3, 1)), np.array([0.0, 2.0, 1.0]))


def test_match_ratio_differences(letters):
    diffs = ex.match_ratio_differences(letters, "gave")
    assert list(diffs.index) == ["2:1 - 1:1", "3:1 - 1:1", "3:1 - 2:1"]
    # Saturated dummy regression reproduces the raw differences
    assert np.allclose(diffs["raw_diff"], diffs["regression_diff"])
    with pytest.raises(ValueError):
        ex.match_ratio_differences(letters[letters["ratio"] != 3], "gave")


def test_law_of_large_numbers_converges():
    lln = ex.law_of_large_numbers(n_draws=100000, seed=1)
    assert len(lln["cumulative_mean"]) == 100000
    assert lln["cumulative_mean"][-1] == pytest.approx(lln["true_diff"],
                                                       abs=0.005)


def test_central_limit_draws_shrink_with_n():
    clt = ex.central_limit_draws(sample_sizes=(50, 1000), n_reps=500, seed=1)
    assert set(clt) == {50, 1000}
    assert clt[50].shape == (500,)
    assert clt[1000].std() < clt[50].std()


def test_treatment_regression_drops_missing():
    df = pd.DataFrame(dict(y=[1.0, 2.0, np.nan, 4.0, 5.0],
                           d=[0.0, 1.0, 1.0, 0.0, 1.0]))
    assert ex.treatment_regression(df, "y", ["d"])["n"] == 4
