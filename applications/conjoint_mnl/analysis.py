"""
Multinomial Logit on Streaming-Service Conjoint Data
=====================================================

Estimates part-worths for brand, ads and price by maximum likelihood and
by Metropolis-Hastings MCMC, using methods from the analytics/ package.

Reads a long-format CSV (one row per alternative: resp, task, brand, ad,
price, choice) when --data is given; otherwise simulates the experiment.
"""

import argparse
import os
import sys
from pathlib import Path

import numpy as np
import pandas as pd

# Add project root to path so the analytics package is importable
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from analytics import mnl as m_mnl
from analytics import mcmc as m_mcmc

# Profiles for the market-share scenario: (brand_N, brand_P, ads, price)
SCENARIO = {
    "Netflix, ads, $10": [1, 0, 1, 10],
    "Prime, no ads, $12": [0, 1, 0, 12],
    "Hulu, no ads, $8": [0, 0, 0, 8],
}


def load_conjoint(path):
    """Read a long-format conjoint CSV."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"conjoint data not found: {path}")
    return pd.read_csv(path)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Conjoint MNL -- MLE and Bayesian (MH) estimation"
    )
    parser.add_argument("--data", default=None,
                        help="Long-format conjoint CSV (default: simulate)")
    parser.add_argument("--n-resp", type=int, default=100)
    parser.add_argument("--n-tasks", type=int, default=10)
    parser.add_argument("--n-steps", type=int, default=11000,
                        help="MCMC iterations including burn-in")
    parser.add_argument("--burn-in", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args(argv)

    print("=" * 60)
    print("Conjoint Analysis -- Multinomial Logit")
    print("=" * 60)

    # --- Load data ---
    if args.data:
        df = load_conjoint(args.data)
        print(f"\n[Data] Loaded {args.data}")
    else:
        df = m_mnl.simulate_conjoint(n_resp=args.n_resp,
                                     n_tasks=args.n_tasks, seed=args.seed)
        print("\n[Data] Using simulated data")
        print(f"  True part-worths: {m_mnl.TRUE_BETA}")

    encoded, names = m_mnl.encode_conjoint(df)
    panel = m_mnl.build_panel(encoded, names)
    R, T, J, K = panel["X"].shape
    print(f"[Data] respondents={R}  tasks={T}  alternatives={J}  "
          f"attributes={K}")

    # --- 1) Maximum likelihood ---
    fit = m_mnl.fit_mnl(panel)
    print("\n[MLE] Coefficients (converged={})".format(fit["converged"]))
    print(fit["table"].round(4).to_string())
    print(f"  Log-likelihood: {fit['log_lik']:.2f}  "
          f"(null {fit['null_ll']:.2f}, McFadden R2 {fit['pseudo_r2']:.3f})")

    prof = m_mnl.price_profile_ci(panel, fit["beta"], se=fit["se"])
    print(f"  Price profile-likelihood 95% CI: "
          f"[{prof['ci_95'][0]:.4f}, {prof['ci_95'][1]:.4f}]")

    # --- 2) Willingness to pay and market shares ---
    wtp = m_mnl.willingness_to_pay(fit["beta"], names)
    print("\n[WTP] Dollar value per month:")
    for name, value in wtp.items():
        print(f"  {name:<10} ${value:7.2f}")

    shares = m_mnl.market_shares(fit["beta"], list(SCENARIO.values()))
    print("\n[Shares] Predicted market shares:")
    for label, share in zip(SCENARIO, shares):
        print(f"  {label:<22} {share:6.1%}")

    # --- 3) Bayesian MNL via Metropolis-Hastings ---
    log_target = m_mcmc.mnl_posterior(panel)
    chain = m_mcmc.metropolis_hastings(
        log_target, np.zeros(K), m_mcmc.mnl_step_sd(names),
        n_steps=args.n_steps, burn_in=args.burn_in, seed=args.seed,
    )
    summary = m_mcmc.posterior_summary(chain["draws"], names)
    summary["mle"] = fit["beta"]
    summary["ess"] = m_mcmc.effective_sample_size(chain["draws"])
    print(f"\n[MCMC] {args.n_steps} steps, burn-in {args.burn_in}, "
          f"acceptance rate {chain['acceptance_rate']:.3f}")
    print(summary.round(4).to_string())


if __name__ == "__main__":
    main()
