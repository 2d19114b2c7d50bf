"""
test_optimizers.py
~~~~~~~~~~~~~~~~~~

Unit tests for the optimizer update rules and their keyed state.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from nnlab.neural_networks import (
    AdaGrad,
    Adam,
    GradDescent,
    Momentum,
    Nesterov,
    OptimizerId,
    RMSProp,
    StoGradDescent,
    get_optimizer
)
from nnlab.tensor import Tensor

EPS = 1e-9


def _tensor(values):
    return Tensor(len(values), source=values)


@pytest.fixture
def gradient():
    return _tensor([0.5, -1.0, 2.0])


@pytest.mark.unit
class TestUpdateRules:
    """Test one and two steps of every rule against hand-written formulas."""

    def test_grad_descent(self, gradient):
        """Test w -= lr * g."""
        weight = _tensor([1.0, 1.0, 1.0])
        GradDescent(lr=0.1).update("w", weight, gradient)
        assert_allclose(weight.data, [0.95, 1.1, 0.8])

    def test_gradient_is_not_modified(self, gradient):
        """Test that the optimizer leaves the gradient untouched."""
        Adam(lr=0.1).update("w", _tensor([0.0, 0.0, 0.0]), gradient)
        assert_allclose(gradient.data, [0.5, -1.0, 2.0])

    def test_stograd_descent_decay(self, gradient):
        """Test w = (1 - lr * decay) * w - lr * g."""
        weight = _tensor([1.0, 1.0, 1.0])
        StoGradDescent(lr=0.1, decay=0.5).update("w", weight, gradient)
        assert_allclose(weight.data, 0.95 - 0.1 * gradient.data)

    def test_momentum_two_steps(self, gradient):
        """Test that the velocity carries over between steps."""
        optimizer = Momentum(lr=0.1, momentum=0.9)
        weight = _tensor([0.0, 0.0, 0.0])
        g = gradient.data
        optimizer.update("w", weight, gradient)
        optimizer.update("w", weight, gradient)

        v1 = -0.1 * g
        v2 = 0.9 * v1 - 0.1 * g
        assert_allclose(weight.data, v1 + v2)

    def test_nesterov_two_steps(self, gradient):
        """Test w += mu * v - lr * g with the updated velocity."""
        optimizer = Nesterov(lr=0.1, momentum=0.9)
        weight = _tensor([0.0, 0.0, 0.0])
        g = gradient.data
        optimizer.update("w", weight, gradient)
        optimizer.update("w", weight, gradient)

        v1 = -0.1 * g
        v2 = 0.9 * v1 - 0.1 * g
        expected = (0.9 * v1 - 0.1 * g) + (0.9 * v2 - 0.1 * g)
        assert_allclose(weight.data, expected)

    def test_adagrad_two_steps(self, gradient):
        """Test that squared gradients accumulate."""
        optimizer = AdaGrad(lr=0.1)
        weight = _tensor([0.0, 0.0, 0.0])
        g = gradient.data
        optimizer.update("w", weight, gradient)
        optimizer.update("w", weight, gradient)

        step1 = 0.1 * g / np.sqrt(g ** 2 + EPS)
        step2 = 0.1 * g / np.sqrt(2 * g ** 2 + EPS)
        assert_allclose(weight.data, -(step1 + step2))

    def test_rmsprop_two_steps(self, gradient):
        """Test the decaying average of squared gradients."""
        optimizer = RMSProp(lr=0.1, beta=0.9)
        weight = _tensor([0.0, 0.0, 0.0])
        g = gradient.data
        optimizer.update("w", weight, gradient)
        optimizer.update("w", weight, gradient)

        s1 = 0.1 * g ** 2
        s2 = 0.9 * s1 + 0.1 * g ** 2
        expected = -0.1 * g / np.sqrt(s1 + EPS) - 0.1 * g / np.sqrt(s2 + EPS)
        assert_allclose(weight.data, expected)

    def test_adam_two_steps(self, gradient):
        """Test bias-corrected moments over two steps."""
        optimizer = Adam(lr=0.01, beta1=0.9, beta2=0.999)
        weight = _tensor([0.0, 0.0, 0.0])
        g = gradient.data
        optimizer.update("w", weight, gradient)
        optimizer.update("w", weight, gradient)

        expected = np.zeros(3)
        m = np.zeros(3)
        s = np.zeros(3)
        for t in (1, 2):
            m = 0.9 * m + 0.1 * g
            s = 0.999 * s + 0.001 * g ** 2
            expected -= 0.01 / (1 - 0.9 ** t) * m / np.sqrt(s / (1 - 0.999 ** t) + EPS)
        assert_allclose(weight.data, expected)

    def test_adam_first_step_is_about_lr(self, gradient):
        """Test that the first Adam step moves each weight by about lr."""
        weight = _tensor([0.0, 0.0, 0.0])
        Adam(lr=0.01).update("w", weight, gradient)
        assert_allclose(np.abs(weight.data), 0.01, rtol=1e-6)


@pytest.mark.unit
class TestZeroGradient:
    """Test behaviour under a zero gradient."""

    @pytest.mark.parametrize("optimizer", [GradDescent(lr=0.5), StoGradDescent(lr=0.5),
                                           AdaGrad(lr=0.5), RMSProp(lr=0.5), Adam(lr=0.5)])
    def test_fresh_state_leaves_weights_unchanged(self, optimizer):
        """Test that a zero gradient on fresh state does not move the weights."""
        weight = _tensor([1.0, -2.0, 3.0])
        optimizer.update("zero", weight, Tensor(3))
        assert_allclose(weight.data, [1.0, -2.0, 3.0])

    def test_momentum_velocity_decays(self, gradient):
        """Test that a zero gradient shrinks the velocity by the momentum factor."""
        optimizer = Momentum(lr=0.1, momentum=0.5)
        weight = _tensor([0.0, 0.0, 0.0])
        optimizer.update("w", weight, gradient)
        velocity = optimizer.velocities["w"].data.copy()
        before = weight.data.copy()
        optimizer.update("w", weight, Tensor(3))
        assert_allclose(optimizer.velocities["w"].data, 0.5 * velocity)
        # the weight keeps coasting by the decayed velocity
        assert_allclose(weight.data - before, 0.5 * velocity)

    def test_nesterov_velocity_decays(self, gradient):
        """Test that Nesterov shrinks the velocity and steps by mu times it."""
        optimizer = Nesterov(lr=0.1, momentum=0.5)
        weight = _tensor([0.0, 0.0, 0.0])
        optimizer.update("w", weight, gradient)
        velocity = optimizer.velocities["w"].data.copy()
        assert_allclose(velocity, -0.1 * gradient.data)

        before = weight.data.copy()
        optimizer.update("w", weight, Tensor(3))
        assert_allclose(optimizer.velocities["w"].data, 0.5 * velocity)
        assert_allclose(weight.data - before, 0.25 * velocity)

    def test_adam_moments_decay(self):
        """Test that a zero gradient after warm-up decays m by beta1 and s by beta2."""
        optimizer = Adam(lr=0.01, beta1=0.9, beta2=0.999)
        weight = _tensor([0.0, 0.0, 0.0])
        g = np.array([1.0, -1.0, 0.5])
        optimizer.update("w", weight, _tensor(g))
        m = optimizer.moments["w"].data.copy()
        s = optimizer.squares["w"].data.copy()
        assert_allclose(m, 0.1 * g)
        assert_allclose(s, 0.001 * g ** 2)

        before = weight.data.copy()
        optimizer.update("w", weight, Tensor(3))
        assert_allclose(optimizer.moments["w"].data, 0.9 * m)
        assert_allclose(optimizer.squares["w"].data, 0.999 * s)

        m, s = 0.9 * m, 0.999 * s
        step = 0.01 / (1 - 0.9 ** 2) * m / np.sqrt(s / (1 - 0.999 ** 2) + EPS)
        assert_allclose(weight.data - before, -step)
        assert np.all(weight.data != before)


@pytest.mark.unit
class TestState:
    """Test keyed optimizer state."""

    def test_keys_are_independent(self, gradient):
        """Test that two keys keep separate velocities."""
        optimizer = Momentum(lr=0.1, momentum=0.9)
        a = _tensor([0.0, 0.0, 0.0])
        b = _tensor([0.0, 0.0, 0.0])
        optimizer.update("a", a, gradient)
        optimizer.update("a", a, gradient)
        optimizer.update("b", b, gradient)
        assert_allclose(b.data, -0.1 * gradient.data)
        assert set(optimizer.velocities) == {"a", "b"}

    def test_size_change_raises(self, gradient):
        """Test that reusing a key with another size raises ValueError."""
        optimizer = Adam()
        optimizer.update("w", _tensor([0.0, 0.0, 0.0]), gradient)
        with pytest.raises(ValueError):
            optimizer.update("w", _tensor([0.0, 0.0]), _tensor([1.0, 1.0]))

    def test_reset_zeroes_state(self, gradient):
        """Test that reset makes the next step behave like the first one."""
        optimizer = Adam(lr=0.01)
        weight = _tensor([0.0, 0.0, 0.0])
        optimizer.update("w", weight, gradient)
        first_step = weight.data.copy()

        optimizer.update("w", weight, gradient)
        optimizer.reset()
        assert np.all(optimizer.moments["w"].data == 0.0)

        weight.fill(0.0)
        optimizer.update("w", weight, gradient)
        assert_allclose(weight.data, first_step)

    def test_learning_rate_property(self):
        """Test reading and changing the learning rate."""
        optimizer = GradDescent(lr=0.1)
        optimizer.learning_rate = 0.05
        assert optimizer.learning_rate == 0.05
        assert optimizer.lr == 0.05


@pytest.mark.unit
class TestFactory:
    """Test get_optimizer."""

    @pytest.mark.parametrize("solver, cls", [
        ('gd', GradDescent), ('sgd', StoGradDescent), ('momentum', Momentum),
        ('nesterov', Nesterov), ('adagrad', AdaGrad), ('rms_prop', RMSProp),
        ('adam', Adam), (OptimizerId.adam, Adam), (5, AdaGrad)
    ])
    def test_lookup(self, solver, cls):
        """Test lookup by name, alias and id."""
        assert isinstance(get_optimizer(solver), cls)

    def test_kwargs_are_forwarded(self):
        """Test that keyword arguments reach the constructor."""
        optimizer = get_optimizer('momentum', lr=0.3, momentum=0.5)
        assert optimizer.lr == 0.3
        assert optimizer.momentum == 0.5

    @pytest.mark.parametrize("solver", ['lbfgs', 0, 42])
    def test_unknown_solver_raises(self, solver):
        """Test that unknown solvers raise ValueError."""
        with pytest.raises(ValueError):
            get_optimizer(solver)
