"""
K-Means and K-Nearest Neighbors from Scratch
=============================================

Part 1: cluster penguins on bill and flipper length, choosing K with
the elbow (inertia) and silhouette criteria.
Part 2: classify points around a wiggly boundary with KNN and pick k
by test accuracy.

Uses methods from the analytics/ package.
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

# Add project root to path so the analytics package is importable
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from analytics import kmeans as m_km
from analytics import knn as m_knn

FEATURES = ["bill_length_mm", "flipper_length_mm"]


def load_penguins(path):
    if not Path(path).exists():
        raise FileNotFoundError(f"penguins data not found: {path}")
    df = pd.read_csv(path)
    missing = [c for c in FEATURES if c not in df.columns]
    if missing:
        raise RuntimeError(f"penguins data lacks columns: {missing}")
    return df.dropna(subset=FEATURES)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="K-Means and KNN implemented from scratch"
    )
    parser.add_argument("--penguins", default=None,
                        help="Penguins CSV (default: simulate)")
    parser.add_argument("--k-max", type=int, default=7)
    parser.add_argument("--knn-k-max", type=int, default=30)
    parser.add_argument("--n-train", type=int, default=100)
    parser.add_argument("--n-test", type=int, default=100)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args(argv)

    print("=" * 60)
    print("K-Means and K-Nearest Neighbors")
    print("=" * 60)

    # --- 1) K-Means ---
    if args.penguins:
        penguins = load_penguins(args.penguins)
        print(f"\n[Data] Loaded {args.penguins}")
    else:
        print("\n[Data] Using simulated penguins")
        penguins = m_km.simulate_penguins(seed=args.seed)
    X = penguins[FEATURES].to_numpy(dtype=float)
    # Standardize so both lengths carry equal weight in the distance
    Z = (X - X.mean(axis=0)) / X.std(axis=0)

    res = m_km.kmeans(Z, 3, seed=args.seed, n_init=5)
    print(f"\n[K-Means] K=3 converged={res['converged']} "
          f"after {res['n_iter']} iterations, inertia={res['inertia']:.2f}")
    centers = res["centroids"] * X.std(axis=0) + X.mean(axis=0)
    for j, c in enumerate(centers):
        print(f"  cluster {j}: bill={c[0]:.1f} mm  flipper={c[1]:.1f} mm  "
              f"n={(res['labels'] == j).sum()}")

    scores = m_km.elbow(Z, range(2, args.k_max + 1), seed=args.seed, n_init=5)
    best_k = int(scores.loc[scores["silhouette"].idxmax(), "k"])
    print("\n[K-Means] Elbow and silhouette:")
    print(scores.round(4).to_string(index=False))
    print(f"  Best K by silhouette: {best_k}")

    # --- 2) KNN ---
    train = m_knn.simulate_boundary_data(args.n_train, seed=args.seed)
    test = m_knn.simulate_boundary_data(args.n_test, seed=args.seed + 1)
    cols = ["x1", "x2"]
    k_max = min(args.knn_k_max, args.n_train)
    acc = m_knn.accuracy_by_k(train[cols].to_numpy(), train["y"].to_numpy(),
                              test[cols].to_numpy(), test["y"].to_numpy(),
                              range(1, k_max + 1))
    print(f"\n[KNN] Train N={args.n_train}, test N={args.n_test}")
    print(acc["table"].round(3).to_string(index=False))
    print(f"  Best k: {acc['best_k']} (accuracy {acc['best_accuracy']:.2f})")


if __name__ == "__main__":
    main()
