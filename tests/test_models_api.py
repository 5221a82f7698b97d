import numpy as np
import pandas as pd
import pytest

from backpropnets import models
from backpropnets.core.errors import ConfigurationError


def _clusters(n=90, seed=0):
    rng = np.random.default_rng(seed)
    centers = np.array([[-3.0, 0.0], [3.0, 0.0], [0.0, 3.0]])
    labels = np.arange(n) % 3
    X = centers[labels] + 0.5 * rng.standard_normal((n, 2))
    y = np.array(["setosa", "versicolor", "virginica"], dtype=object)[labels]
    return X, y


def _linear(n=150, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n, 3)) * [1.0, 10.0, 0.1] + [0.0, 50.0, -2.0]
    y = X @ np.array([[1.0], [0.2], [5.0]]) + 0.05 * rng.standard_normal((n, 1))
    return X, y


def test_classification_round_trip():
    X, y = _clusters()
    ann = models.neuralnetwork(
        X, y, hidden_layers=[5], optim_type="adam", learn_rates=0.05,
        n_epochs=60, batch_size=15, verbose=False, random_state=0,
    )
    assert ann.meta.y_names == ("setosa", "versicolor", "virginica")
    assert len(ann.history) == 60
    result = models.predict(ann, X)
    assert np.mean(result["predictions"] == y) > 0.95
    probabilities = result["probabilities"]
    assert list(probabilities.columns) == ["class_setosa", "class_versicolor", "class_virginica"]
    np.testing.assert_allclose(probabilities.sum(axis=1), 1.0)
    assert "classification" in str(ann)


def test_regression_predictions_are_on_the_original_scale():
    X, y = _linear()
    ann = models.neuralnetwork(
        X, y, hidden_layers=[4], regression=True, activ_functions="linear", optim_type="adam",
        learn_rates=0.01, n_epochs=150, batch_size=16, verbose=False, random_state=1,
    )
    fit = models.predict(ann, X)["predictions"]
    assert fit.shape == (150, 1)
    assert np.corrcoef(fit.ravel(), y.ravel())[0, 1] > 0.99
    assert abs(fit.mean() - y.mean()) < 0.5 * y.std()


def test_loss_must_match_the_task():
    X, y = _clusters()
    with pytest.raises(ConfigurationError):
        models.neuralnetwork(X, y, hidden_layers=[3], loss_type="squared", verbose=False)
    Xr, yr = _linear()
    with pytest.raises(ConfigurationError):
        models.neuralnetwork(Xr, yr, hidden_layers=[3], regression=True, loss_type="log", verbose=False)


def test_learn_rates_are_broadcast_per_layer():
    X, y = _linear()
    ann, _, _ = models.build_model(
        X, y, hidden_layers=[4, 3], regression=True, learn_rates=[0.1, 0.01, 0.001]
    )
    assert [layer.optimizer.params.learn_rate for layer in ann.network.layers] == [0.1, 0.01, 0.001]
    with pytest.raises(ConfigurationError):
        models.build_model(X, y, hidden_layers=[4, 3], regression=True, learn_rates=[0.1, 0.01])


def test_array_settings_are_broadcast_like_lists():
    X, y = _linear()
    ann, _, _ = models.build_model(
        X,
        y,
        hidden_layers=[4, 3],
        regression=True,
        activ_functions=np.array(["relu", "sigmoid"]),
        learn_rates=np.array([0.1, 0.01, 0.001]),
    )
    assert [layer.activation.name for layer in ann.network.layers] == ["relu", "sigmoid", "linear"]
    assert [layer.optimizer.params.learn_rate for layer in ann.network.layers] == [0.1, 0.01, 0.001]
    single, _, _ = models.build_model(X, y, hidden_layers=[4], regression=True, learn_rates=np.float64(0.05))
    assert [layer.optimizer.params.learn_rate for layer in single.network.layers] == [0.05, 0.05]


def test_continued_training_appends_history():
    X, y = _linear()
    ann = models.neuralnetwork(
        X, y, hidden_layers=[3], regression=True, n_epochs=3, batch_size=16, verbose=False,
        random_state=0,
    )
    added = models.train(ann, X, y, n_epochs=2, batch_size=16, verbose=False)
    assert [record.epoch for record in added] == [4, 5]
    assert len(ann.history) == 5
    with pytest.raises(ValueError):
        models.train(ann, X)


def test_input_validation():
    X, y = _linear()
    ann = models.neuralnetwork(
        X, y, hidden_layers=[3], regression=True, n_epochs=1, batch_size=16, verbose=False
    )
    with pytest.raises(ValueError):
        models.predict(ann, X[:, :2])
    bad = X.copy()
    bad[0, 0] = np.nan
    with pytest.raises(ValueError):
        models.neuralnetwork(bad, y, hidden_layers=[3], regression=True, verbose=False)
    with pytest.raises(ValueError):
        models.neuralnetwork(X, y[:10], hidden_layers=[3], regression=True, verbose=False)


def test_dataframe_column_names_are_kept():
    X, y = _linear()
    frame = pd.DataFrame(X, columns=["age", "income", "score"])
    target = pd.Series(y.ravel(), name="spend")
    ann = models.neuralnetwork(
        frame, target, hidden_layers=[2], regression=True, n_epochs=1, batch_size=16, verbose=False
    )
    assert ann.meta.x_names == ("age", "income", "score")
    assert ann.meta.y_names == ("spend",)


def test_autoencoder_encode_decode_reconstruct(tmp_path):
    X, _ = _linear()
    ann = models.autoencoder(
        X, hidden_layers=[3, 2, 3], optim_type="adam", learn_rates=0.01, n_epochs=20,
        batch_size=16, verbose=False, random_state=0,
    )
    codes = models.encode(ann, X)
    assert codes.shape == (150, 2)
    decoded = models.decode(ann, codes)
    rec = models.reconstruct(ann, X)
    np.testing.assert_allclose(decoded, rec["reconstructed"])
    np.testing.assert_allclose(rec["errors"], np.sum((rec["reconstructed"] - X) ** 2, axis=1) / 3)
    assert models.encode(ann, X, compression_layer=1).shape == (150, 3)
    with pytest.raises(ConfigurationError):
        models.encode(ann, X, compression_layer=4)
    with pytest.raises(ValueError):
        models.train(ann, X, X)
    assert models.rec_plot(ann, X[:10], tmp_path / "rec.png").exists()
    assert models.plot(ann, tmp_path / "loss.png").exists()


def test_encode_on_plain_network_warns():
    X, y = _linear()
    ann = models.neuralnetwork(
        X, y, hidden_layers=[2], regression=True, n_epochs=1, batch_size=16, verbose=False
    )
    with pytest.warns(UserWarning):
        assert models.encode(ann, X).shape == (150, 2)
    with pytest.raises(ValueError):
        models.reconstruct(ann, X)


def test_ambiguous_compression_layer():
    X, _ = _linear()
    ann = models.autoencoder(X, hidden_layers=[2, 2], n_epochs=1, batch_size=16, verbose=False)
    with pytest.raises(ConfigurationError):
        models.encode(ann, X)
    assert models.encode(ann, X, compression_layer=2).shape == (150, 2)
