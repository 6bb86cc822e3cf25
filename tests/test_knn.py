import numpy as np
import pytest

from analytics import knn


def test_euclidean_distances():
    D = knn.euclidean_distances([[0.0, 0.0], [1.0, 1.0]],
                                [[3.0, 4.0], [0.0, 0.0]])
    assert D.shape == (2, 2)
    assert D[0].tolist() == [5.0, 0.0]
    assert D[1, 1] == pytest.approx(np.sqrt(2))
    with pytest.raises(ValueError):
        knn.euclidean_distances([[0.0]], [[0.0, 1.0]])


def test_k1_reproduces_training_labels():
    df = knn.simulate_boundary_data(60, seed=3)
    X, y = df[["x1", "x2"]].to_numpy(), df["y"].to_numpy()
    assert knn.knn_predict(X, y, X, k=1).tolist() == y.tolist()


def test_majority_vote():
    X_train = np.array([[0.0], [1.0], [2.0], [10.0]])
    y_train = np.array([1, 1, 0, 0])
    assert knn.knn_predict(X_train, y_train, [[0.5]], k=3).tolist() == [1]
    assert knn.knn_predict(X_train, y_train, [[9.0]], k=1).tolist() == [0]


def test_ties_go_to_class_of_nearest_neighbour():
    X_train = np.array([[2.0], [1.0]])
    assert knn.knn_predict(X_train, np.array(["a", "b"]), [[0.0]],
                           k=2).tolist() == ["b"]
    assert knn.knn_predict(X_train, np.array(["b", "a"]), [[0.0]],
                           k=2).tolist() == ["a"]


@pytest.mark.parametrize("k", [0, 5])
def test_invalid_k(k):
    X = np.zeros((4, 2))
    with pytest.raises(ValueError):
        knn.knn_predict(X, np.zeros(4), X, k=k)


def test_mismatched_training_lengths():
    with pytest.raises(ValueError):
        knn.knn_predict(np.zeros((4, 2)), np.zeros(3), np.zeros((1, 2)), k=1)


def test_accuracy():
    assert knn.accuracy([1, 0, 1, 1], [1, 1, 1, 0]) == 0.5
    with pytest.raises(ValueError):
        knn.accuracy([1, 0], [1])


def test_simulated_labels_follow_boundary():
    df = knn.simulate_boundary_data(200, seed=1)
    above = df["x2"] > np.sin(4 * df["x1"]) + df["x1"]
    assert (df["y"] == above.astype(int)).all()
    assert df[["x1", "x2"]].abs().max().max() <= 3


def test_accuracy_by_k():
    train = knn.simulate_boundary_data(200, seed=1)
    test = knn.simulate_boundary_data(200, seed=2)
    cols = ["x1", "x2"]
    res = knn.accuracy_by_k(train[cols].to_numpy(), train["y"].to_numpy(),
                            test[cols].to_numpy(), test["y"].to_numpy(),
                            range(1, 21))
    table = res["table"]
    assert table["k"].tolist() == list(range(1, 21))
    assert res["best_accuracy"] == table["accuracy"].max()
    assert table.loc[table["k"] == res["best_k"], "accuracy"].iloc[0] == \
        res["best_accuracy"]
    assert res["best_accuracy"] > 0.8
    # Agrees with calling knn_predict directly
    pred = knn.knn_predict(train[cols].to_numpy(), train["y"].to_numpy(),
                           test[cols].to_numpy(), k=5)
    assert table.loc[4, "accuracy"] == knn.accuracy(test["y"], pred)
