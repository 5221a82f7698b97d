import numpy as np
import pytest

from backpropnets.core.errors import ConfigurationError, ShapeError
from backpropnets.core.network import Network
from backpropnets.core.types import OptimizerParams, TrainParams
from backpropnets.training.trainer import Trainer, resolve_train_params


def _regression(n=100, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n, 4))
    Y = X @ rng.uniform(-1, 1, size=(4, 1)) + 0.05 * rng.standard_normal((n, 1))
    return X, Y


def _network(lr=0.01, seed=0, optimizer="sgd"):
    return Network(
        [4, 3, 1],
        ["tanh", "linear"],
        "squared",
        OptimizerParams(kind=optimizer, learn_rate=lr),
        rng=seed,
    )


def test_history_has_one_record_per_epoch():
    X, Y = _regression()
    net = _network()
    added = Trainer(net).train(X, Y, TrainParams(n_epochs=5, batch_size=20, val_prop=0.1))
    assert [r.epoch for r in added] == [1, 2, 3, 4, 5]
    # 90 training rows in batches of 20 with the remainder dropped
    assert all(r.batch == 4 for r in added)
    assert all(r.val_loss is not None for r in added)
    assert net.get_train_history() == added


def test_history_is_append_only_across_calls():
    X, Y = _regression()
    net = _network()
    first = net.train(X, Y, TrainParams(n_epochs=3, batch_size=10))
    snapshot = list(net.get_train_history())
    second = net.train(X, Y, {"n_epochs": 2, "batch_size": 10})
    history = net.get_train_history()
    assert history[:3] == snapshot == first
    assert [r.epoch for r in second] == [4, 5]
    assert len(history) == 5


def test_no_validation_split_leaves_val_loss_empty():
    X, Y = _regression()
    net = _network()
    added = Trainer(net).train(X, Y, TrainParams(n_epochs=2, batch_size=25, val_prop=0.0))
    assert all(r.val_loss is None for r in added)
    assert all(r.batch == 4 for r in added)


def test_incomplete_batch_is_trained_when_not_dropped():
    X, Y = _regression()
    net = _network()
    added = Trainer(net).train(
        X, Y, TrainParams(n_epochs=1, batch_size=40, val_prop=0.0, drop_last=False)
    )
    assert added[0].batch == 3


def test_batch_larger_than_training_set():
    X, Y = _regression(n=20)
    with pytest.raises(ConfigurationError):
        Trainer(_network()).train(X, Y, TrainParams(n_epochs=1, batch_size=50, drop_last=True))
    added = Trainer(_network()).train(
        X, Y, TrainParams(n_epochs=1, batch_size=50, drop_last=False)
    )
    assert added[0].batch == 1


def test_training_is_deterministic_for_a_seed():
    X, Y = _regression()
    runs = []
    for _ in range(2):
        net = _network(seed=11)
        Trainer(net, rng=5).train(X, Y, TrainParams(n_epochs=4, batch_size=16))
        runs.append((net.get_train_history(), net.state_dict()))
    assert runs[0][0] == runs[1][0]
    for key in runs[0][1]:
        np.testing.assert_array_equal(runs[0][1][key], runs[1][1][key])


def test_early_stopping_restores_best_parameters():
    X, Y = _regression()
    # a learning rate this large makes full-batch descent diverge
    net = Network([4, 1], "linear", "squared", OptimizerParams(learn_rate=3.0, momentum=0.0), rng=0)
    snapshots = {0: net.state_dict()}
    trainer = Trainer(net, callbacks=[lambda epoch, metrics: snapshots.update({epoch: net.state_dict()})])
    params = TrainParams(n_epochs=50, batch_size=200, drop_last=False, val_prop=0.2, patience=3)
    with np.errstate(over="ignore", invalid="ignore"):
        added = trainer.train(X, Y, params)

    assert trainer.stopped_early
    best_epoch = trainer.best_epoch or 0
    assert len(added) == best_epoch + 3
    best = snapshots[best_epoch]
    for key, value in net.state_dict().items():
        np.testing.assert_array_equal(value, best[key])


def test_last_parameters_kept_when_patience_never_runs_out():
    X, Y = _regression()
    net = _network(lr=0.01)
    snapshots = {}
    trainer = Trainer(net, callbacks=[lambda epoch, metrics: snapshots.update({epoch: net.state_dict()})])
    added = trainer.train(X, Y, TrainParams(n_epochs=5, batch_size=10, patience=50))
    assert not trainer.stopped_early
    for key, value in net.state_dict().items():
        np.testing.assert_array_equal(value, snapshots[added[-1].epoch][key])


def test_callbacks_receive_prefixed_metrics():
    X, Y = _regression()
    seen = []
    trainer = Trainer(
        _network(),
        callbacks=[lambda epoch, metrics: seen.append((epoch, dict(metrics)))],
        metric_names=["mae", "rmse"],
    )
    trainer.train(X, Y, TrainParams(n_epochs=2, batch_size=10))
    assert [epoch for epoch, _ in seen] == [1, 2]
    assert {"loss", "val_loss", "mae", "rmse", "val_mae", "val_rmse"} <= set(seen[0][1])


def test_shape_and_parameter_validation():
    X, Y = _regression()
    trainer = Trainer(_network())
    with pytest.raises(ShapeError):
        trainer.train(X[:, :3], Y, TrainParams(n_epochs=1))
    with pytest.raises(ShapeError):
        trainer.train(X, Y[:50], TrainParams(n_epochs=1))
    with pytest.raises(ConfigurationError):
        resolve_train_params({"n_epochs": 0})
    with pytest.raises(ConfigurationError):
        resolve_train_params({"epochs": 3})
    with pytest.raises(ConfigurationError):
        resolve_train_params(TrainParams(val_prop=1.0))
    with pytest.raises(ConfigurationError):
        resolve_train_params(TrainParams(patience=0))


def test_early_stopping_restores_starting_parameters_when_nothing_improves():
    X, Y = _regression()
    net = _network(lr=0.01)
    start = net.state_dict()
    trainer = Trainer(net)
    added = trainer.train(
        X, Y, TrainParams(n_epochs=20, batch_size=10, patience=2, min_delta=1e9)
    )
    assert trainer.stopped_early
    assert trainer.best_epoch is None
    assert len(added) == 2
    for key, value in net.state_dict().items():
        np.testing.assert_array_equal(value, start[key])


def test_divergence_in_the_first_epoch_keeps_history_finite():
    X, Y = _regression()
    net = Network([4, 1], "linear", "squared", OptimizerParams(learn_rate=1e100, momentum=0.0), rng=0)
    start = net.state_dict()
    trainer = Trainer(net)
    with np.errstate(all="ignore"):
        added = trainer.train(X * 1e100, Y, TrainParams(n_epochs=10, batch_size=20, patience=3))

    assert trainer.stopped_early
    assert trainer.best_epoch is None
    assert len(added) == 3
    for record in added:
        assert np.isfinite(record.train_loss)
        assert np.isfinite(record.val_loss)
    for key, value in net.state_dict().items():
        np.testing.assert_array_equal(value, start[key])
