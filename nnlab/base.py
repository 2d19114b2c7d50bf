# pylint: disable=missing-docstring
from abc import abstractmethod
from typing import Callable, Dict

from nnlab.tensor import BaseTensor, Linear, Shape

# Zero-argument callable producing one scalar per parameter element
Generator = Callable[[], float]


class ILayer:
    """
    Forward contract of a layer.

    A layer owns its parameters and its cache tensors. ``forward`` writes into
    the layer's own ``value`` tensor and returns it by reference: the next
    layer reads it directly and it stays valid until the next ``forward``.
    """

    linear = Linear()

    def __init__(self):
        # Stable key prefix for optimizer state; the Network assigns it
        self.layer_id = None
        self._activation = None
        self._value = None

    @abstractmethod
    def init(self, generator: Generator) -> None:
        """Fill the parameters with values drawn from ``generator``."""
        raise NotImplementedError

    @abstractmethod
    def connect(self, activation) -> "ILayer":
        """Replace the activation function (Activation, id or name)."""
        raise NotImplementedError

    @abstractmethod
    def forward(self, input_data: BaseTensor) -> BaseTensor:
        raise NotImplementedError

    @abstractmethod
    def isize(self) -> Shape:
        raise NotImplementedError

    @abstractmethod
    def osize(self) -> Shape:
        raise NotImplementedError

    @abstractmethod
    def prepare(self) -> None:
        """(Re)allocate the cache tensors from the layer's Shapes."""
        raise NotImplementedError

    @property
    def value(self) -> BaseTensor:
        """Output of the last ``forward`` call."""
        return self._value

    @property
    def activation_id(self):
        return self._activation.id

    def parameters(self) -> Dict[str, BaseTensor]:
        """Trainable tensors by name; empty for parameterless layers."""
        return {}

    def config(self) -> Dict[str, tuple]:
        """Constructor geometry, enough to rebuild an identical layer."""
        return {}

    def init_parameters(self, bias=None, weight=None) -> None:
        """
        Load parameter values, e.g. from a saved network.

        Values are copied element by element into the existing parameter
        tensors, so they must have the layer's parameter sizes. Call
        ``prepare`` afterwards.
        """
        parameters = self.parameters()
        for name, value in (('bias', bias), ('weight', weight)):
            if value is not None:
                parameters[name].copy(value)

    def key(self, name: str) -> str:
        """Optimizer key of the parameter ``name``."""
        return f"{self.layer_id or 'layer'}.{name}"


class ITrainLayer(ILayer):
    """
    Training contract of a layer: backward, gradient accumulation, update.

    Subclasses fill ``self._grads`` (gradient of the last ``backward`` by
    parameter name) and ``self._sums`` (running sum over a batch) in
    ``prepare``; accumulation, reset and update are shared here.
    """

    def __init__(self):
        super().__init__()
        self._delta = None
        self._grads = {}
        self._sums = {}

    @abstractmethod
    def backward(self, input_data: BaseTensor, idelta: BaseTensor,
                 propagate: bool = True) -> None:
        """
        Compute parameter gradients for one sample.

        Args:
            input_data: The tensor this layer received in ``forward``.
            idelta: Delta coming back from the next layer (or the loss).
            propagate: Whether to compute ``delta`` for the previous layer;
                the first layer of a network has nobody to hand it to.
        """
        raise NotImplementedError

    @property
    def delta(self) -> BaseTensor:
        """Delta with respect to this layer's input, shaped like ``isize()``."""
        return self._delta

    def accumulate(self) -> None:
        """Add the last computed gradients to the batch sums."""
        for name, grad in self._grads.items():
            self._sums[name].add(grad)

    def reset(self) -> None:
        """Zero the batch sums."""
        for total in self._sums.values():
            total.fill(0.0)

    def update(self, optimizer, scale: float) -> None:
        """
        Scale the batch sums and let the optimizer update the parameters.

        Args:
            optimizer: Object with ``update(key, parameter, gradient)``.
            scale (float): Factor applied to the summed gradients, e.g.
                ``1 / batch_size``.
        """
        parameters = self.parameters()
        for name, total in self._sums.items():
            total.join(scale)
            optimizer.update(self.key(name), parameters[name], total)
