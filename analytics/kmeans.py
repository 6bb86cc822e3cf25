"""
K-Means clustering from scratch

Lloyd's algorithm: alternate between assigning each point to its
nearest centroid and moving each centroid to the mean of its points,
until the largest centroid shift falls below `tol`.
"""

import numpy as np
import pandas as pd

from .knn import euclidean_distances


def _check_k(X, k):
    if not 1 <= k <= len(X):
        raise ValueError(f"k must be between 1 and {len(X)}, got {k}")


def init_centroids(X, k, method="random"):
    """
    Starting centroids.

    method="random" picks k distinct data points; "k-means++" picks each
    next point with probability proportional to its squared distance
    from the nearest centroid chosen so far.
    """
    X = np.asarray(X, dtype=float)
    _check_k(X, k)
    n = len(X)
    if method == "random":
        return X[np.random.choice(n, k, replace=False)].copy()
    if method != "k-means++":
        raise ValueError(f"unknown init method: {method!r}")

    chosen = [np.random.randint(n)]
    for _ in range(1, k):
        d2 = (euclidean_distances(X, X[chosen]).min(axis=1)) ** 2
        total = d2.sum()
        if total == 0:
            remaining = np.setdiff1d(np.arange(n), chosen)
            chosen.append(np.random.choice(remaining))
        else:
            chosen.append(np.random.choice(n, p=d2 / total))
    return X[chosen].copy()


def assign_clusters(X, centroids):
    """Index of the nearest centroid for every point (ties: lowest index)."""
    return np.argmin(euclidean_distances(X, centroids), axis=1)


def update_centroids(X, labels, k, previous):
    """Cluster means; an empty cluster keeps its previous centroid."""
    centroids = np.array(previous, dtype=float, copy=True)
    for j in range(k):
        members = X[labels == j]
        if len(members):
            centroids[j] = members.mean(axis=0)
    return centroids


def inertia(X, labels, centroids):
    """Within-cluster sum of squared distances."""
    X = np.asarray(X, dtype=float)
    return float(np.sum((X - centroids[labels]) ** 2))


def _lloyd(X, k, max_iter, tol, init):
    centroids = init_centroids(X, k, init)
    history = [centroids.copy()]
    converged = False
    n_iter = 0
    for n_iter in range(1, max_iter + 1):
        labels = assign_clusters(X, centroids)
        new = update_centroids(X, labels, k, centroids)
        shift = np.sqrt(((new - centroids) ** 2).sum(axis=1)).max()
        centroids = new
        history.append(centroids.copy())
        if shift <= tol:
            converged = True
            break
    labels = assign_clusters(X, centroids)
    return dict(
        centroids=centroids,
        labels=labels,
        inertia=inertia(X, labels, centroids),
        n_iter=n_iter,
        converged=converged,
        history=np.array(history),
    )


def kmeans(X, k, max_iter=300, tol=1e-6, init="random", n_init=1,
           seed=None):
    """
    K-Means clustering.

    Parameters
    ----------
    X : ndarray, shape (n, d)
    k : int
        Number of clusters, 1 <= k <= n.
    max_iter : int
        Maximum assignment/update iterations per run.
    tol : float
        Convergence threshold on the largest centroid shift.
    init : {"random", "k-means++"}
    n_init : int
        Independent restarts; the run with the lowest inertia is kept.
    seed : int or None
        Random seed.

    Returns
    -------
    dict with keys:
        centroids : ndarray, shape (k, d)
        labels    : ndarray, shape (n,)
        inertia   : within-cluster sum of squares
        n_iter    : iterations used
        converged : bool
        history   : centroid positions at every iteration
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError("X must be a 2-d array")
    _check_k(X, k)
    if n_init < 1:
        raise ValueError("n_init must be at least 1")
    if seed is not None:
        np.random.seed(seed)

    best = None
    for _ in range(n_init):
        run = _lloyd(X, k, max_iter, tol, init)
        if best is None or run["inertia"] < best["inertia"]:
            best = run
    return best


def silhouette_score(X, labels):
    """
    Mean silhouette coefficient s_i = (b_i - a_i) / max(a_i, b_i).

    Points alone in their cluster score 0; with a single cluster the
    score is 0.
    """
    X = np.asarray(X, dtype=float)
    labels = np.asarray(labels)
    clusters = np.unique(labels)
    if len(clusters) < 2:
        return 0.0
    D = euclidean_distances(X, X)
    s = np.zeros(len(X))
    for i in range(len(X)):
        same = labels == labels[i]
        n_same = same.sum() - 1
        if n_same == 0:
            continue
        a = D[i, same].sum() / n_same
        b = min(D[i, labels == c].mean() for c in clusters if c != labels[i])
        denom = max(a, b)
        s[i] = (b - a) / denom if denom > 0 else 0.0
    return float(s.mean())


def elbow(X, k_values=range(2, 8), seed=None, n_init=1):
    """
    Inertia and silhouette for each candidate number of clusters.

    Returns
    -------
    pandas.DataFrame with columns k, inertia, silhouette
    """
    rows = []
    for k in k_values:
        res = kmeans(X, k, seed=seed, n_init=n_init)
        rows.append(dict(k=k, inertia=res["inertia"],
                         silhouette=silhouette_score(X, res["labels"])))
    return pd.DataFrame(rows)


# Approximate species means of (bill length mm, flipper length mm)
SPECIES_MEANS = {
    "Adelie": (38.8, 190.0),
    "Chinstrap": (48.8, 195.8),
    "Gentoo": (47.5, 217.2),
}
SPECIES_SD = (2.8, 6.5)


def simulate_penguins(n_per_species=100, seed=None):
    """
    Simulate penguin bill and flipper lengths for three species.

    Returns
    -------
    pandas.DataFrame with columns species, bill_length_mm, flipper_length_mm
    """
    if seed is not None:
        np.random.seed(seed)
    frames = []
    for species, (bill, flipper) in SPECIES_MEANS.items():
        frames.append(pd.DataFrame(dict(
            species=species,
            bill_length_mm=np.random.normal(bill, SPECIES_SD[0], n_per_species),
            flipper_length_mm=np.random.normal(flipper, SPECIES_SD[1],
                                               n_per_species),
        )))
    return pd.concat(frames, ignore_index=True)
