"""
Activation and loss functions with stable ids.

The integer ids are part of the saved-network format: never renumber them.
Activation kernels take a source array and write into ``out`` (which may be
the source itself); loss kernels reduce a target/prediction pair to a float
and write their derivative with respect to the prediction into ``out``.
"""
from enum import IntEnum

import numpy as np

EPSILON = 1e-9


class ActivationId(IntEnum):
    """Stable ids of the activation functions."""
    undefined = 0
    identity = 1
    sigmoid = 2
    tanh = 3
    relu = 4
    elu = 5
    lrelu = 6
    selu = 7
    gelu = 8
    softsign = 9
    softplus = 10
    swish = 11
    softmax = 12
    mod_relu = 13
    mod_tanh = 14


class LossId(IntEnum):
    """Stable ids of the loss functions."""
    undefined = 0
    MSE = 1
    MAE = 2
    CCE = 3
    BCE = 4
    MSLE = 5
    NLL = 6
    LC = 7
    CCE_ = 8
    BCE_ = 9


# Activation kernels
def identity(x, out):
    out[...] = x


def identity_derivative(x, out):
    out.fill(1.0)


def sigmoid(x, out):
    out[...] = 1.0 / (np.exp(-np.clip(x, -500, 500)) + 1.0)


def sigmoid_derivative(x, out):
    out[...] = 0.5 / (np.cosh(np.clip(x, -500, 500)) + 1.0)


def tanh(x, out):
    np.tanh(x, out=out)


def tanh_derivative(x, out):
    out[...] = 1.0 / np.cosh(np.clip(x, -350, 350)) ** 2


def relu(x, out):
    np.maximum(x, 0.0, out=out)


def relu_derivative(x, out):
    out[...] = x > 0.0


def elu(x, out, alpha=0.2):
    out[...] = np.where(x > 0.0, x, alpha * np.expm1(np.minimum(x, 0.0)))


def elu_derivative(x, out, alpha=0.2):
    out[...] = np.where(x > 0.0, 1.0, alpha * np.exp(np.minimum(x, 0.0)))


def lrelu(x, out, alpha=0.01):
    out[...] = np.where(x > 0.0, x, alpha * x)


def lrelu_derivative(x, out, alpha=0.01):
    out[...] = np.where(x > 0.0, 1.0, alpha)


def selu(x, out, scale=1.050701, beta=1.758099):
    out[...] = np.where(x > 0.0, scale * x, beta * np.expm1(np.minimum(x, 0.0)))


def selu_derivative(x, out, scale=1.050701, beta=1.758099):
    out[...] = np.where(x > 0.0, scale, beta * np.exp(np.minimum(x, 0.0)))


def gelu(x, out):
    out[...] = 0.5 * x * (np.tanh(0.797885 * x + 0.0356774 * x ** 3) + 1.0)


def gelu_derivative(x, out):
    inner = 0.797885 * x + 0.0356774 * x ** 3
    sech = 1.0 / np.cosh(np.clip(inner, -350, 350))
    out[...] = (0.5 * np.tanh(inner) + 0.5
                + 0.5 * x * sech ** 2 * (0.797885 + 0.1070322 * x ** 2))


def softsign(x, out):
    out[...] = x / (np.abs(x) + 1.0)


def softsign_derivative(x, out):
    out[...] = 1.0 / (np.abs(x) + 1.0) ** 2


def softplus(x, out):
    np.logaddexp(x, 0.0, out=out)


def softplus_derivative(x, out):
    sigmoid(x, out)


def swish(x, out):
    out[...] = x / (np.exp(-np.clip(x, -500, 500)) + 1.0)


def swish_derivative(x, out):
    a = np.exp(-np.clip(x, -500, 500))
    b = a + 1.0
    out[...] = (a * x + b) / (b * b)


def mod_relu(x, out):
    out[...] = np.where(x < 0.0, 0.01 * x, np.where(x > 1.0, 0.99 + 0.01 * x, x))


def mod_relu_derivative(x, out):
    out[...] = np.where((x < 0.0) | (x > 1.0), 0.01, 1.0)


def mod_tanh(x, out):
    t = np.tanh(x)
    out[...] = np.where(x < 0.0, 0.01 * t, t)


def mod_tanh_derivative(x, out):
    sech2 = 1.0 / np.cosh(np.clip(x, -350, 350)) ** 2
    out[...] = np.where(x < 0.0, 0.01 * sech2, sech2)


def softmax(x, out):
    """Numerically stable softmax over the whole buffer."""
    np.exp(x - np.max(x), out=out)
    out /= np.sum(out)


def softmax_derivative(x, out):
    # Folded into the CCE/NLL loss derivative.
    out.fill(1.0)


# Loss kernels
def mean_squared_error(y_true, y_pred):
    return 0.5 * float(np.sum((y_true - y_pred) ** 2))


def mean_squared_error_derivative(out, y_true, y_pred):
    np.subtract(y_pred, y_true, out=out)


def mean_absolute_error(y_true, y_pred):
    return float(np.sum(np.abs(y_pred - y_true)))


def mean_absolute_error_derivative(out, y_true, y_pred):
    np.sign(y_pred - y_true, out=out)


def categorical_cross_entropy(y_true, y_pred):
    return -float(np.sum(y_true * np.log(y_pred + EPSILON)))


def binary_cross_entropy(y_true, y_pred):
    return -float(np.sum(y_true * np.log(y_pred + EPSILON)
                         + (1.0 - y_true) * np.log1p(EPSILON - y_pred)))


def categorical_cross_entropy_derivative(out, y_true, y_pred):
    out[...] = -y_true / (y_pred + EPSILON)


def binary_cross_entropy_derivative_sigmoid(out, y_true, y_pred):
    out[...] = y_true * (y_pred - 1.0) + y_pred * (1.0 - y_true)


def binary_cross_entropy_derivative(out, y_true, y_pred):
    out[...] = (y_true - 1.0) / (y_pred + EPSILON - 1.0) - y_true / (y_pred + EPSILON)


def mean_squared_log_error(y_true, y_pred):
    return 0.5 * float(np.sum(np.log((y_pred + 1.0) / (y_true + 1.0)) ** 2))


def mean_squared_log_error_derivative(out, y_true, y_pred):
    shifted = y_pred + 1.0
    out[...] = np.log(shifted / (y_true + 1.0)) / shifted


def negative_log_likelihood(y_true, y_pred):
    return -float(np.log(np.sum(y_true * y_pred)))


def logcosh(y_true, y_pred):
    return float(np.sum(np.log(np.cosh(y_pred - y_true))))


def logcosh_derivative(out, y_true, y_pred):
    np.tanh(y_pred - y_true, out=out)


_ACTIVATIONS = {
    ActivationId.identity: (identity, identity_derivative),
    ActivationId.sigmoid: (sigmoid, sigmoid_derivative),
    ActivationId.tanh: (tanh, tanh_derivative),
    ActivationId.relu: (relu, relu_derivative),
    ActivationId.elu: (elu, elu_derivative),
    ActivationId.lrelu: (lrelu, lrelu_derivative),
    ActivationId.selu: (selu, selu_derivative),
    ActivationId.gelu: (gelu, gelu_derivative),
    ActivationId.softsign: (softsign, softsign_derivative),
    ActivationId.softplus: (softplus, softplus_derivative),
    ActivationId.swish: (swish, swish_derivative),
    ActivationId.softmax: (softmax, softmax_derivative),
    ActivationId.mod_relu: (mod_relu, mod_relu_derivative),
    ActivationId.mod_tanh: (mod_tanh, mod_tanh_derivative),
}

_LOSSES = {
    LossId.MSE: (mean_squared_error, mean_squared_error_derivative),
    LossId.MAE: (mean_absolute_error, mean_absolute_error_derivative),
    LossId.CCE: (categorical_cross_entropy, mean_squared_error_derivative),
    LossId.BCE: (binary_cross_entropy, binary_cross_entropy_derivative_sigmoid),
    LossId.MSLE: (mean_squared_log_error, mean_squared_log_error_derivative),
    LossId.NLL: (negative_log_likelihood, mean_squared_error_derivative),
    LossId.LC: (logcosh, logcosh_derivative),
    LossId.CCE_: (categorical_cross_entropy, categorical_cross_entropy_derivative),
    LossId.BCE_: (binary_cross_entropy, binary_cross_entropy_derivative),
}


class Activation:
    """Activation function paired with its derivative and id."""

    def __init__(self, function, derivative, activation_id=ActivationId.undefined):
        self.function = function
        self.derivative = derivative
        self.id = activation_id

    def f(self, result, source):
        """``result = f(source)`` over two tensors of the same size."""
        self.function(source.data, result.data)
        return result

    def df(self, result, source):
        """``result = f'(source)`` over two tensors of the same size."""
        self.derivative(source.data, result.data)
        return result

    def __repr__(self):
        return f"Activation({self.id.name})"


class Loss:
    """Loss function paired with its derivative and id."""

    def __init__(self, function, derivative, loss_id=LossId.undefined):
        self.function = function
        self.derivative = derivative
        self.id = loss_id

    def f(self, target, prediction):
        """Scalar loss of one sample."""
        return self.function(target.data, prediction.data)

    def df(self, result, target, prediction):
        """Derivative of the loss with respect to the prediction, into ``result``."""
        self.derivative(result.data, target.data, prediction.data)
        return result

    def __repr__(self):
        return f"Loss({self.id.name})"


def _resolve(key, enum, kind):
    if isinstance(key, str):
        for name in (key, key.lower(), key.upper()):
            if name in enum.__members__:
                return enum[name]
        raise ValueError(f"Unknown {kind}: {key}")
    try:
        return enum(key)
    except ValueError:
        raise ValueError(f"Unknown {kind} id: {key}") from None


def get_activation(activation='identity'):
    """
    Look up an activation function.

    Args:
        activation (Activation, ActivationId, int or str): What to look up;
            an Activation instance is returned unchanged.

    Returns:
        Activation
    """
    if isinstance(activation, Activation):
        return activation
    activation_id = _resolve(activation, ActivationId, 'activation')
    if activation_id not in _ACTIVATIONS:
        raise ValueError(f"Unknown activation: {activation}")
    function, derivative = _ACTIVATIONS[activation_id]
    return Activation(function, derivative, activation_id)


def get_loss(loss='mse'):
    """
    Look up a loss function.

    Args:
        loss (Loss, LossId, int or str): What to look up, e.g. ``'mse'`` or
            ``LossId.CCE``; a Loss instance is returned unchanged.

    Returns:
        Loss
    """
    if isinstance(loss, Loss):
        return loss
    loss_id = _resolve(loss, LossId, 'loss')
    if loss_id not in _LOSSES:
        raise ValueError(f"Unknown loss: {loss}")
    function, derivative = _LOSSES[loss_id]
    return Loss(function, derivative, loss_id)
