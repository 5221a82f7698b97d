import numpy as np

from backpropnets.core.network import Network
from backpropnets.core.types import OptimizerParams, TrainParams


def test_single_linear_layer_recovers_least_squares_solution():
    rng = np.random.default_rng(0)
    X = rng.standard_normal((200, 3))
    y = X @ np.array([[0.5], [-1.0], [2.0]]) + 0.5 + 0.1 * rng.standard_normal((200, 1))
    net = Network([3, 1], "linear", "squared", OptimizerParams(learn_rate=0.05, momentum=0.0), rng=1)
    net.train(X, y, TrainParams(n_epochs=2000, batch_size=200, val_prop=0.0))

    design = np.hstack([X, np.ones((200, 1))])
    solution, *_ = np.linalg.lstsq(design, y, rcond=None)
    np.testing.assert_allclose(net.layers[0].W.ravel(), solution[:3, 0], atol=1e-4)
    np.testing.assert_allclose(net.layers[0].b, solution[3], atol=1e-4)


def test_full_batch_gradient_descent_never_increases_the_loss():
    rng = np.random.default_rng(42)
    X = rng.standard_normal((200, 4))
    y = X @ rng.uniform(-1, 1, size=(4, 1)) + 0.1 * rng.standard_normal((200, 1))
    net = Network(
        [4, 2, 1],
        ["tanh", "linear"],
        "squared",
        OptimizerParams(kind="sgd", learn_rate=0.01, momentum=0.0),
        rng=0,
    )
    initial = net.loss_value(X, y)
    history = net.train(X, y, TrainParams(n_epochs=1000, batch_size=200, val_prop=0.0))
    losses = np.array([record.train_loss for record in history])
    assert losses[-1] < losses[0]
    assert net.loss_value(X, y) < initial
    assert np.all(np.diff(losses) <= 1e-12)


def test_softmax_classifier_separates_clusters():
    rng = np.random.default_rng(3)
    centers = np.array([[-3.0, 0.0], [3.0, 0.0], [0.0, 3.0]])
    labels = np.arange(90) % 3
    X = centers[labels] + 0.5 * rng.standard_normal((90, 2))
    Y = np.eye(3)[labels]
    net = Network(
        [2, 5, 3], ["tanh", "softmax"], "log", OptimizerParams(kind="adam", learn_rate=0.05), rng=0
    )
    history = net.train(X, Y, TrainParams(n_epochs=100, batch_size=15, val_prop=0.0))
    assert history[-1].train_loss < history[0].train_loss
    accuracy = np.mean(net.predict(X).argmax(axis=1) == labels)
    assert accuracy > 0.95
