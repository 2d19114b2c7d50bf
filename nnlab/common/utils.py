import numpy as np
import pandas as pd

from nnlab.tensor import Tensor, Vector


def to_samples(X, shape=None):
    """Turn the rows of an array or DataFrame into a list of Tensors."""
    if isinstance(X, (pd.DataFrame, pd.Series)):
        X = X.to_numpy(dtype=float)
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    rows = X.reshape(X.shape[0], -1)
    shape = rows.shape[1] if shape is None else shape
    return [Tensor(shape, source=row) for row in rows]


def one_hot(labels, n_classes=None):
    if isinstance(labels, (pd.DataFrame, pd.Series)):
        labels = labels.to_numpy()
    labels = np.asarray(labels, dtype=int).reshape(-1)
    if n_classes is None:
        n_classes = int(labels.max()) + 1
    if labels.size and (labels.min() < 0 or labels.max() >= n_classes):
        raise ValueError(f"Labels must be in [0, {n_classes}).")
    return [Vector(source=row) for row in np.eye(n_classes)[labels]]


def accuracy(network, inputs, targets):
    """Share of samples whose predicted argmax matches the target's argmax."""
    if len(inputs) == 0:
        raise ValueError("Cannot score an empty dataset.")
    hits = [np.argmax(network.feedforward(x).data) == np.argmax(np.asarray(y).reshape(-1))
            for x, y in zip(inputs, targets)]
    return float(np.mean(hits))
