"""
Training loops: stochastic, batch and mini-batch gradient descent.
"""
import numpy as np
import pandas as pd

from nnlab.tensor import Tensor
from .functional import get_loss


# pylint: disable=too-many-instance-attributes
class Training:
    """
    Trains a Network one sample at a time with a chosen loss and optimizer.

    Parameters
    ----------
    network : Network
        Network to train; its parameters are updated in place.
    loss : Loss, LossId, int or str, default='mse'
        Loss function used by backprop.
    config : dict, optional
        Dictionary of settings. Includes:
            - random_state: int or None, seeds sample selection
            - verbose: int, default=0, print progress when non-zero
            - log_every: int, default=10, epochs (iterations for the
              stochastic loop) between two progress lines
            - track_loss: bool, default=False, record the dataset loss
              after every epoch even when not verbose
    """

    def __init__(self, network, loss='mse', config=None):
        config = config or {}

        self.network = network
        self.random_state = config.get("random_state", None)
        self.verbose = config.get("verbose", 0)
        self.log_every = config.get("log_every", 10)
        self.track_loss = config.get("track_loss", False)

        self._loss = get_loss(loss)
        self._delta = Tensor(network.osize())
        self.rng_ = np.random.default_rng(self.random_state)
        self.loss_curve_ = []

    def set_loss(self, loss):
        """Replace the loss function."""
        self._loss = get_loss(loss)

    def prepare(self):
        """
        Resize the cached loss delta after the network's output changed.

        Returns
        -------
        bool
            True when a new buffer had to be allocated.
        """
        osize = self.network.osize()
        if self._delta.shape == osize:
            return False
        if self._delta.size == osize.size:
            self._delta.reshape(osize)
            return False
        self._delta.resize(osize)
        return True

    def feedforward(self, sample):
        return self.network.feedforward(sample)

    def backprop(self, sample, target):
        """
        Compute every layer's gradients for one sample.

        ``feedforward(sample)`` must have run just before: backprop reads the
        cached layer values.
        """
        layers = self.network.layers
        self._loss.df(self._delta, target, layers[-1].value)

        if len(layers) == 1:
            layers[0].backward(sample, self._delta, propagate=False)
            return

        layers[-1].backward(layers[-2].value, self._delta)
        for i in range(len(layers) - 2, 0, -1):
            layers[i].backward(layers[i - 1].value, layers[i + 1].delta)
        layers[0].backward(sample, layers[1].delta, propagate=False)

    def stochastic(self, inputs, targets, optimizer, iterations):
        """
        Update after every sample, picking samples at random.

        Parameters
        ----------
        inputs, targets : sequence of Tensor
            Samples and their expected outputs.
        optimizer : Optimizer
        iterations : int
            Number of single-sample updates.
        """
        n_samples = self._validate_dataset(inputs, targets)
        for iteration in range(iterations):
            sample = int(self.rng_.integers(n_samples))
            self._reset()
            self._step(inputs[sample], targets[sample])
            self._update(optimizer, 1.0)
            self._display_training_info("Iteration", iteration, iterations, inputs, targets)
        return self

    def batch(self, inputs, targets, optimizer, epochs):
        """Update once per epoch with the gradient averaged over the whole dataset."""
        n_samples = self._validate_dataset(inputs, targets)
        scale = 1.0 / n_samples
        for epoch in range(epochs):
            self._reset()
            for sample, target in zip(inputs, targets):
                self._step(sample, target)
            self._update(optimizer, scale)
            self._display_training_info("Epoch", epoch, epochs, inputs, targets)
        return self

    def mini_batch(self, inputs, targets, optimizer, epochs, mini_batch_size):
        """
        Update after every mini-batch of consecutive samples.

        Each epoch runs ``N // mini_batch_size`` updates; each one starts at a
        randomly chosen slot ``index * mini_batch_size``. Samples past the
        last full slot are never visited.

        Raises
        ------
        ValueError
            If the mini-batch size is not between 1 and the dataset size.
        """
        n_samples = self._validate_dataset(inputs, targets)
        if not 1 <= mini_batch_size <= n_samples:
            raise ValueError(
                f"mini_batch_size must be between 1 and {n_samples}, got {mini_batch_size}")

        n_batches = n_samples // mini_batch_size
        scale = 1.0 / mini_batch_size
        for epoch in range(epochs):
            for _ in range(n_batches):
                start = int(self.rng_.integers(n_batches)) * mini_batch_size
                self._reset()
                for sample in range(start, start + mini_batch_size):
                    self._step(inputs[sample], targets[sample])
                self._update(optimizer, scale)
            self._display_training_info("Epoch", epoch, epochs, inputs, targets)
        return self

    def loss(self, inputs, targets):
        """Mean per-sample loss over a dataset."""
        n_samples = self._validate_dataset(inputs, targets)
        total = 0.0
        for sample, target in zip(inputs, targets):
            total += self._loss.f(target, self.feedforward(sample))
        return total / n_samples

    def history(self):
        """Recorded losses as a DataFrame with ``step`` and ``loss`` columns."""
        return pd.DataFrame({
            "step": np.arange(1, len(self.loss_curve_) + 1),
            "loss": self.loss_curve_,
        })

    def _step(self, sample, target):
        self.feedforward(sample)
        self.backprop(sample, target)
        for layer in self.network:
            layer.accumulate()

    def _reset(self):
        for layer in self.network:
            layer.reset()

    def _update(self, optimizer, scale):
        for layer in self.network:
            layer.update(optimizer, scale)

    def _validate_dataset(self, inputs, targets):
        """Validate the dataset and return its size."""
        if len(inputs) == 0:
            raise ValueError("Cannot train on an empty dataset.")
        if len(inputs) != len(targets):
            raise ValueError("inputs and targets must have the same number of samples.")
        return len(inputs)

    def _display_training_info(self, unit, step, total, inputs, targets):
        """Record the loss and display training information."""
        if not (self.verbose or self.track_loss):
            return
        loss = self.loss(inputs, targets)
        self.loss_curve_.append(loss)
        if self.verbose and ((step + 1) % self.log_every == 0 or step + 1 == total):
            print(f"{unit} {step + 1}/{total}, Loss: {loss:.5f}")
