"""
K-Nearest Neighbors classification from scratch

Prediction is a majority vote among the k training points closest in
Euclidean distance. When two or more classes tie for the most votes,
the tied class that owns the single nearest neighbour wins.
"""

import numpy as np
import pandas as pd


def euclidean_distances(A, B):
    """
    Pairwise Euclidean distances.

    Parameters
    ----------
    A : ndarray, shape (m, d)
    B : ndarray, shape (n, d)

    Returns
    -------
    D : ndarray, shape (m, n)
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    B = np.atleast_2d(np.asarray(B, dtype=float))
    if A.shape[1] != B.shape[1]:
        raise ValueError("A and B must have the same number of columns")
    return np.sqrt(((A[:, None, :] - B[None, :, :]) ** 2).sum(axis=-1))


def _vote(neighbour_labels):
    """Majority label; ties go to the tied label seen first (nearest)."""
    values, counts = np.unique(neighbour_labels, return_counts=True)
    tied = values[counts == counts.max()]
    if len(tied) == 1:
        return tied[0]
    for label in neighbour_labels:
        if label in tied:
            return label


def _predict_from_distances(D, y_train, k):
    order = np.argsort(D, axis=1, kind="stable")[:, :k]
    return np.array([_vote(y_train[row]) for row in order])


def _check_k(k, n_train):
    if not 1 <= k <= n_train:
        raise ValueError(f"k must be between 1 and {n_train}, got {k}")


def knn_predict(X_train, y_train, X_test, k=5):
    """
    Predict class labels for X_test.

    Parameters
    ----------
    X_train : ndarray, shape (n, d)
    y_train : ndarray, shape (n,)
    X_test : ndarray, shape (m, d)
    k : int
        Number of neighbours, 1 <= k <= n.

    Returns
    -------
    ndarray, shape (m,)
    """
    y_train = np.asarray(y_train)
    if len(X_train) != len(y_train):
        raise ValueError("X_train and y_train have different lengths")
    _check_k(k, len(y_train))
    D = euclidean_distances(X_test, X_train)
    return _predict_from_distances(D, y_train, k)


def accuracy(y_true, y_pred):
    """Share of correct predictions."""
    y_true, y_pred = np.asarray(y_true), np.asarray(y_pred)
    if y_true.shape != y_pred.shape:
        raise ValueError("y_true and y_pred have different shapes")
    return float(np.mean(y_true == y_pred))


def accuracy_by_k(X_train, y_train, X_test, y_test, k_values=range(1, 31)):
    """
    Test accuracy for each k; distances are computed once.

    Returns
    -------
    dict with keys:
        table         : pandas.DataFrame with columns k, accuracy
        best_k        : smallest k attaining the highest accuracy
        best_accuracy : that accuracy
    """
    y_train = np.asarray(y_train)
    k_values = list(k_values)
    for k in k_values:
        _check_k(k, len(y_train))
    D = euclidean_distances(X_test, X_train)
    acc = [accuracy(y_test, _predict_from_distances(D, y_train, k))
           for k in k_values]
    table = pd.DataFrame(dict(k=k_values, accuracy=acc))
    best = int(np.argmax(acc))
    return dict(table=table, best_k=k_values[best], best_accuracy=acc[best])


def simulate_boundary_data(n=100, seed=None):
    """
    Two features on U(-3, 3); y = 1 above the wiggly boundary
    x2 = sin(4 x1) + x1.

    Returns
    -------
    pandas.DataFrame with columns x1, x2, y
    """
    if seed is not None:
        np.random.seed(seed)
    x1 = np.random.uniform(-3, 3, n)
    x2 = np.random.uniform(-3, 3, n)
    boundary = np.sin(4 * x1) + x1
    y = (x2 > boundary).astype(int)
    return pd.DataFrame(dict(x1=x1, x2=x2, y=y))
