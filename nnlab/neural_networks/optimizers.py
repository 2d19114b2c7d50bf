"""
Stateful gradient optimizers.

Every optimizer updates one parameter tensor at a time, in place. Auxiliary
state (velocities, squared-gradient averages, Adam moments) is kept per
stable parameter key such as ``"layer_0.weight"``, created on first sight
of the key and sized like its gradient.
"""
from enum import IntEnum

import numpy as np

from nnlab.tensor import Tensor


class OptimizerId(IntEnum):
    """Stable ids of the optimizers."""
    undefined = 0
    grad_descent = 1
    stograd_descent = 2
    momentum = 3
    nesterov = 4
    ada_grad = 5
    rms_prop = 6
    adam = 7


class Optimizer:
    """
    Base class of the optimizers.

    Args:
        lr (float): Learning rate.
        epsilon (float): Added under the square root of adaptive rules.
    """

    optimizer_id = OptimizerId.undefined

    def __init__(self, lr=0.01, epsilon=1e-9):
        self.lr = lr
        self.epsilon = epsilon
        # Scratch space, one buffer per key so a step never allocates
        self._buffers = {}

    @property
    def learning_rate(self):
        return self.lr

    @learning_rate.setter
    def learning_rate(self, value):
        self.lr = value

    def update(self, key, parameter, gradient):
        """
        Apply one update step to ``parameter`` in place.

        Args:
            key (str): Stable identifier of the parameter.
            parameter (BaseTensor): Parameter to update.
            gradient (BaseTensor): Gradient of the loss, same size; not modified.

        Raises:
            ValueError: If ``key`` was seen before with another size.
        """
        raise NotImplementedError

    def reset(self):
        """Zero all auxiliary state, keeping the keys."""
        for table in self._state():
            for tensor in table.values():
                tensor.fill(0.0)

    def _state(self):
        return []

    def _get(self, table, key, like):
        buffer = table.get(key)
        if buffer is None:
            buffer = Tensor(like.shape)
            table[key] = buffer
        elif buffer.size != like.size:
            raise ValueError(
                f"Parameter '{key}' was optimized with {buffer.size} elements, "
                f"got a gradient of {like.size}")
        return buffer

    def _invert_sqrt(self, values):
        return 1.0 / np.sqrt(values + self.epsilon)

    def __repr__(self):
        return f"{type(self).__name__}(lr={self.lr})"


class GradDescent(Optimizer):
    """Plain gradient descent: ``w -= lr * g``."""

    optimizer_id = OptimizerId.grad_descent

    def update(self, key, parameter, gradient):
        step = self._get(self._buffers, key, gradient)
        step.join(self.lr, gradient)
        parameter.sub(step)


class StoGradDescent(Optimizer):
    """
    Gradient descent with weight decay: ``w = (1 - lr * decay) * w - lr * g``.
    """

    optimizer_id = OptimizerId.stograd_descent

    def __init__(self, lr=0.01, decay=0.0, epsilon=1e-9):
        super().__init__(lr, epsilon)
        self.decay = decay

    def update(self, key, parameter, gradient):
        step = self._get(self._buffers, key, gradient)
        step.join(self.lr, gradient)
        parameter.join(1.0 - self.lr * self.decay)
        parameter.sub(step)


class Momentum(Optimizer):
    """Momentum: ``v = mu * v - lr * g; w += v``."""

    optimizer_id = OptimizerId.momentum

    def __init__(self, lr=0.01, momentum=0.9, epsilon=1e-9):
        super().__init__(lr, epsilon)
        self.momentum = momentum
        self.velocities = {}

    def _state(self):
        return [self.velocities]

    def _velocity(self, key, gradient):
        velocity = self._get(self.velocities, key, gradient)
        step = self._get(self._buffers, key, gradient)
        step.join(self.lr, gradient)
        velocity.join(self.momentum)
        velocity.sub(step)
        return velocity, step

    def update(self, key, parameter, gradient):
        velocity, _ = self._velocity(key, gradient)
        parameter.add(velocity)


class Nesterov(Momentum):
    """Nesterov accelerated gradient: ``v = mu * v - lr * g; w += mu * v - lr * g``."""

    optimizer_id = OptimizerId.nesterov

    def update(self, key, parameter, gradient):
        velocity, step = self._velocity(key, gradient)
        parameter.sub(step)
        step.join(self.momentum, velocity)
        parameter.add(step)


class AdaGrad(Optimizer):
    """AdaGrad: ``s += g^2; w -= lr * g / sqrt(s + eps)``."""

    optimizer_id = OptimizerId.ada_grad

    def __init__(self, lr=0.01, epsilon=1e-9):
        super().__init__(lr, epsilon)
        self.squares = {}

    def _state(self):
        return [self.squares]

    def update(self, key, parameter, gradient):
        square = self._get(self.squares, key, gradient)
        step = self._get(self._buffers, key, gradient)
        step.mul(gradient, gradient)
        square.add(step)
        square.apply(self._invert_sqrt, out=step)
        step.mul(gradient)
        step.join(self.lr)
        parameter.sub(step)


class RMSProp(Optimizer):
    """RMSProp: ``s = beta * s + (1 - beta) * g^2; w -= lr * g / sqrt(s + eps)``."""

    optimizer_id = OptimizerId.rms_prop

    def __init__(self, lr=0.01, beta=0.9, epsilon=1e-9):
        super().__init__(lr, epsilon)
        self.beta = beta
        self.squares = {}

    def _state(self):
        return [self.squares]

    def update(self, key, parameter, gradient):
        square = self._get(self.squares, key, gradient)
        step = self._get(self._buffers, key, gradient)
        step.mul(gradient, gradient)
        step.join(1.0 - self.beta)
        square.join(self.beta)
        square.add(step)
        square.apply(self._invert_sqrt, out=step)
        step.mul(gradient)
        step.join(self.lr)
        parameter.sub(step)


class Adam(Optimizer):
    """
    Adam optimizer.

    Per key it keeps the first moment ``m``, the second moment ``s`` and the
    running powers ``beta1^t``, ``beta2^t`` used for bias correction:
    ``w -= lr / (1 - beta1^t) * m / sqrt(s / (1 - beta2^t) + eps)``.
    """

    optimizer_id = OptimizerId.adam

    def __init__(self, lr=0.001, beta1=0.9, beta2=0.999, epsilon=1e-9):
        super().__init__(lr, epsilon)
        self.beta1 = beta1
        self.beta2 = beta2
        self.moments = {}
        self.squares = {}
        self.powers = {}

    def _state(self):
        return [self.moments, self.squares]

    def reset(self):
        super().reset()
        for key in self.powers:
            self.powers[key] = [1.0, 1.0]

    def update(self, key, parameter, gradient):
        moment = self._get(self.moments, key, gradient)
        square = self._get(self.squares, key, gradient)
        step = self._get(self._buffers, key, gradient)

        powers = self.powers.setdefault(key, [1.0, 1.0])
        powers[0] *= self.beta1
        powers[1] *= self.beta2

        step.join(1.0 - self.beta1, gradient)
        moment.join(self.beta1)
        moment.add(step)

        step.mul(gradient, gradient)
        step.join(1.0 - self.beta2)
        square.join(self.beta2)
        square.add(step)

        step.join(1.0 / (1.0 - powers[1]), square)
        step.apply(self._invert_sqrt, out=step)
        step.mul(moment)
        step.join(self.lr / (1.0 - powers[0]))
        parameter.sub(step)


_OPTIMIZERS = {
    OptimizerId.grad_descent: GradDescent,
    OptimizerId.stograd_descent: StoGradDescent,
    OptimizerId.momentum: Momentum,
    OptimizerId.nesterov: Nesterov,
    OptimizerId.ada_grad: AdaGrad,
    OptimizerId.rms_prop: RMSProp,
    OptimizerId.adam: Adam,
}

_ALIASES = {
    'gd': OptimizerId.grad_descent,
    'sgd': OptimizerId.stograd_descent,
    'adagrad': OptimizerId.ada_grad,
    'rmsprop': OptimizerId.rms_prop,
}


def get_optimizer(solver='adam', **kwargs):
    """
    Factory function to get optimizer instances.

    Args:
        solver (str, int or OptimizerId): Optimizer name (e.g. ``'sgd'``,
            ``'momentum'``, ``'adam'``) or id.
        **kwargs: Optimizer-specific parameters.

    Returns:
        Optimizer instance
    """
    if isinstance(solver, str):
        name = solver.lower()
        optimizer_id = _ALIASES.get(name, OptimizerId.__members__.get(name))
    else:
        try:
            optimizer_id = OptimizerId(solver)
        except ValueError:
            optimizer_id = None

    if optimizer_id not in _OPTIMIZERS:
        raise ValueError(f"Unknown solver: {solver}")
    return _OPTIMIZERS[optimizer_id](**kwargs)
