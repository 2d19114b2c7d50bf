"""
Neural network layers implementation.

Every layer reads one sample at a time and keeps its own caches, so a
forward/backward pass allocates nothing once ``prepare`` has run.
"""
import numpy as np

from nnlab.base import ITrainLayer
from nnlab.tensor import Matrix, Shape, Tensor, TensorView, Vector
from .functional import get_activation


class Input(Shape):
    """Input shape of a layer: ``Input(n)``, ``Input(h, w)`` or ``Input(d, h, w)``."""

    __slots__ = ()

    def __init__(self, *dims):
        super().__init__(*Shape.of(dims).dims())


class Output(Shape):
    """Output shape of a fully-connected layer."""

    __slots__ = ()

    def __init__(self, *dims):
        super().__init__(*Shape.of(dims).dims())


class Filter:
    """Square convolution kernel of side ``size``, ``count`` of them."""

    def __init__(self, size, count=1):
        if size < 1 or count < 1:
            raise ValueError(f"Filter size and count must be positive, got {size}, {count}")
        self.size = int(size)
        self.count = int(count)

    def __repr__(self):
        return f"Filter(size={self.size}, count={self.count})"


class _Volume2D:
    """Height/width pair; the width defaults to the height."""

    def __init__(self, height, width=None):
        self.height = int(height)
        self.width = self.height if width is None else int(width)

    @classmethod
    def of(cls, value):
        if isinstance(value, _Volume2D):
            return value
        if hasattr(value, '__index__'):
            return cls(value)
        return cls(*value)

    def __iter__(self):
        return iter((self.height, self.width))

    def __repr__(self):
        return f"{type(self).__name__}({self.height}, {self.width})"


class Pooling(_Volume2D):
    """Pooling window."""


class Padding(_Volume2D):
    """Implicit zero padding on each side."""


class Stride(_Volume2D):
    """Step between two windows."""


def _as_vector(tensor):
    # Matrix samples are flattened before they reach Linear.dot
    if tensor.ndim == 2:
        return TensorView(tensor, ndim=1)
    return tensor


def _window(out_len, in_len, offset, stride):
    """
    Output and input slices of one kernel tap along one axis.

    Output position ``y`` reads input position ``stride * y + offset``; taps
    falling in the padding are dropped. Returns None when no position of the
    output reads inside the input.
    """
    first = max(0, -(offset // stride))
    last = min(out_len - 1, (in_len - 1 - offset) // stride)
    if last < first:
        return None
    return (slice(first, last + 1),
            slice(stride * first + offset, stride * last + offset + 1, stride))


class FullyConnected(ITrainLayer):
    """
    Dense layer: ``value = f(input . weight + bias)``.

    Args:
        isize (Shape or int): Input shape; any input is read as a flat vector.
        osize (Shape or int): Output shape.
        activation: Activation, id or name; identity when omitted.
    """

    def __init__(self, isize, osize, activation=None):
        super().__init__()
        self._isize = Shape.of(isize)
        self._osize = Shape.of(osize)
        self.weight = Matrix(self._isize.size, self._osize.size)
        self.bias = Vector(self._osize.size)
        self._activation = get_activation(activation or 'identity')
        self.prepare()

    def prepare(self):
        n, m = self._isize.size, self._osize.size
        self._buff = Vector(m)
        self._value = Tensor(self._osize)
        self._delta = Tensor(self._isize)
        self._grads = {'bias': Vector(m), 'weight': Matrix(n, m)}
        self._sums = {'bias': Vector(m), 'weight': Matrix(n, m)}

    def init(self, generator):
        self.bias.fill(generator)
        self.weight.fill(generator)

    def connect(self, activation):
        self._activation = get_activation(activation)
        return self

    def forward(self, input_data):
        self.linear.dot(self._buff, _as_vector(input_data), self.weight)
        self._buff.add(self.bias)
        self._activation.f(self._value, self._buff)
        return self._value

    def backward(self, input_data, idelta, propagate=True):
        grad_b = self._grads['bias']
        self._activation.df(grad_b, self._buff)
        grad_b.mul(idelta)
        self.linear.tensordot(self._grads['weight'], input_data, grad_b)
        if propagate:
            self.linear.dot(self._delta, self.weight, grad_b)

    def isize(self):
        return self._isize

    def osize(self):
        return self._osize

    def parameters(self):
        return {'bias': self.bias, 'weight': self.weight}

    def config(self):
        return {'isize': self._isize.dims(), 'osize': self._osize.dims()}

    @classmethod
    def from_config(cls, config):
        return cls(Shape(*config['isize']), Shape(*config['osize']))

    def __repr__(self):
        return (f"FullyConnected(isize={self._isize.size}, osize={self._osize.size}, "
                f"activation={self.activation_id.name})")


class Convolutional(ITrainLayer):
    """
    2-D convolution (cross-correlation) over a (depth, height, width) input.

    The output has one channel per filter and spatial size
    ``(in - size + 2 * padding) // stride + 1``. Filters live in a single
    kernel tensor of shape (count * depth, size, size); ``filters`` holds a
    view per filter.

    Args:
        isize (Shape or tuple): Input shape (depth, height, width).
        kernel (Filter or int): Kernel side and number of filters.
        padding (Padding, int or tuple): Zero padding on each side.
        stride (Stride, int or tuple): Step between two windows.
        activation: Activation, id or name; identity when omitted.

    Raises:
        ValueError: If the geometry leaves no output position.
    """

    def __init__(self, isize, kernel, padding=0, stride=1, activation=None):
        super().__init__()
        self._isize = Shape.of(isize)
        self.kernel = kernel if isinstance(kernel, Filter) else Filter(kernel)
        self.padding = Padding.of(padding)
        self.stride = Stride.of(stride)

        if self.stride.height < 1 or self.stride.width < 1:
            raise ValueError(f"Stride must be positive, got {self.stride}")
        if self.padding.height < 0 or self.padding.width < 0:
            raise ValueError(f"Padding must not be negative, got {self.padding}")

        size = self.kernel.size
        out_h = (self._isize.height - size + 2 * self.padding.height) // self.stride.height + 1
        out_w = (self._isize.width - size + 2 * self.padding.width) // self.stride.width + 1
        if out_h < 1 or out_w < 1:
            raise ValueError(
                f"Kernel of size {size} does not fit input {self._isize} "
                f"with {self.padding}")
        self._osize = Shape(self.kernel.count, out_h, out_w)

        depth = self._isize.depth
        self.weight = Tensor(Shape(self.kernel.count * depth, size, size))
        step = depth * size * size
        self.filters = [
            TensorView(self.weight.data[f * step:(f + 1) * step], Shape(depth, size, size))
            for f in range(self.kernel.count)
        ]
        self.bias = Vector(self.kernel.count)
        self._activation = get_activation(activation or 'identity')
        self.prepare()

    def _kernel4d(self, tensor):
        depth, size = self._isize.depth, self.kernel.size
        return tensor.data.reshape(self.kernel.count, depth, size, size)

    def prepare(self):
        count, out_h, out_w = self._osize.dims()
        _, in_h, in_w = self._isize.dims()
        size = self.kernel.size
        sh, sw = self.stride
        ph, pw = self.padding

        self._buff = Tensor(self._osize)
        self._value = Tensor(self._osize)
        self._local = Tensor(self._osize)
        self._delta = Tensor(self._isize)
        self._grads = {'bias': Vector(count), 'weight': Tensor(self.weight.shape)}
        self._sums = {'bias': Vector(count), 'weight': Tensor(self.weight.shape)}

        # Output deltas spread back onto a stride-1 grid
        dil_h, dil_w = sh * (out_h - 1) + 1, sw * (out_w - 1) + 1
        self._dilated = Tensor(Shape(count, dil_h, dil_w))

        self._taps = [(i, j, _window(out_h, in_h, i - ph, sh), _window(out_w, in_w, j - pw, sw))
                      for i in range(size) for j in range(size)]
        self._grad_taps = [(i, j, _window(dil_h, in_h, i - ph, 1), _window(dil_w, in_w, j - pw, 1))
                           for i in range(size) for j in range(size)]
        full_h, full_w = size - 1 - ph, size - 1 - pw
        self._delta_taps = [(i, j, _window(in_h, dil_h, i - full_h, 1),
                             _window(in_w, dil_w, j - full_w, 1))
                            for i in range(size) for j in range(size)]

    def init(self, generator):
        self.bias.fill(generator)
        self.weight.fill(generator)

    def connect(self, activation):
        self._activation = get_activation(activation)
        return self

    def forward(self, input_data):
        x = input_data.data.reshape(self._isize.dims())
        kernel = self._kernel4d(self.weight)
        out = self._buff.array
        out[...] = self.bias.data[:, None, None]
        for i, j, rows, cols in self._taps:
            if rows is None or cols is None:
                continue
            out[:, rows[0], cols[0]] += np.tensordot(
                kernel[:, :, i, j], x[:, rows[1], cols[1]], axes=(1, 0))
        self._activation.f(self._value, self._buff)
        return self._value

    def backward(self, input_data, idelta, propagate=True):
        self._activation.df(self._local, self._buff)
        self._local.mul(idelta)

        sh, sw = self.stride
        dilated = self._dilated.array
        dilated.fill(0.0)
        dilated[:, ::sh, ::sw] = self._local.array

        x = input_data.data.reshape(self._isize.dims())
        grad_w = self._kernel4d(self._grads['weight'])
        for i, j, rows, cols in self._grad_taps:
            if rows is None or cols is None:
                grad_w[:, :, i, j] = 0.0
                continue
            grad_w[:, :, i, j] = np.tensordot(
                dilated[:, rows[0], cols[0]], x[:, rows[1], cols[1]], axes=([1, 2], [1, 2]))
        np.sum(self._local.array, axis=(1, 2), out=self._grads['bias'].data)

        if not propagate:
            return
        delta = self._delta.array
        delta.fill(0.0)
        flipped = self._kernel4d(self.weight)[:, :, ::-1, ::-1]
        for i, j, rows, cols in self._delta_taps:
            if rows is None or cols is None:
                continue
            delta[:, rows[0], cols[0]] += np.tensordot(
                flipped[:, :, i, j], dilated[:, rows[1], cols[1]], axes=(0, 0))

    def isize(self):
        return self._isize

    def osize(self):
        return self._osize

    def parameters(self):
        return {'bias': self.bias, 'weight': self.weight}

    def config(self):
        return {'isize': self._isize.dims(),
                'kernel': (self.kernel.size, self.kernel.count),
                'padding': tuple(self.padding),
                'stride': tuple(self.stride)}

    @classmethod
    def from_config(cls, config):
        return cls(Shape(*config['isize']), Filter(*config['kernel']),
                   Padding(*config['padding']), Stride(*config['stride']))

    def __repr__(self):
        return (f"Convolutional(isize={self._isize.dims()}, {self.kernel}, "
                f"{self.padding}, {self.stride})")


class MaxPooling(ITrainLayer):
    """
    Max pooling over each channel of a (depth, height, width) input.

    The output has spatial size ``1 + (in - pooling) // stride``. The first
    maximum of every window is remembered in ``mask`` (1 at the winning
    input positions) and receives the whole output delta on backward.

    Args:
        isize (Shape or tuple): Input shape (depth, height, width).
        pooling (Pooling, int or tuple): Window size.
        stride (Stride, int or tuple): Step between two windows.
        activation: Activation, id or name; identity when omitted.
    """

    def __init__(self, isize, pooling, stride=1, activation=None):
        super().__init__()
        self._isize = Shape.of(isize)
        self.pooling = Pooling.of(pooling)
        self.stride = Stride.of(stride)

        if self.stride.height < 1 or self.stride.width < 1:
            raise ValueError(f"Stride must be positive, got {self.stride}")
        if self.pooling.height < 1 or self.pooling.width < 1:
            raise ValueError(f"Pooling window must be positive, got {self.pooling}")

        out_h = 1 + (self._isize.height - self.pooling.height) // self.stride.height
        out_w = 1 + (self._isize.width - self.pooling.width) // self.stride.width
        if self.pooling.height > self._isize.height or self.pooling.width > self._isize.width:
            raise ValueError(f"{self.pooling} does not fit input {self._isize}")
        self._osize = Shape(self._isize.depth, out_h, out_w)
        self._activation = get_activation(activation or 'identity')
        self.prepare()

    def prepare(self):
        depth, height, width = self._isize.dims()
        _, out_h, out_w = self._osize.dims()
        self._buff = Tensor(self._osize)
        self._value = Tensor(self._osize)
        self._local = Tensor(self._osize)
        self._delta = Tensor(self._isize)
        self.mask = Tensor(self._isize)
        self._argmax = np.zeros(self._osize.size, dtype=np.intp)

        # Flat input index of every window's top-left corner
        d, y, x = np.meshgrid(np.arange(depth), np.arange(out_h), np.arange(out_w),
                              indexing='ij')
        self._corners = ((d * height + y * self.stride.height) * width
                         + x * self.stride.width).reshape(-1)

    def init(self, generator):
        pass

    def connect(self, activation):
        self._activation = get_activation(activation)
        return self

    def forward(self, input_data):
        depth, _, width = self._isize.dims()
        _, out_h, out_w = self._osize.dims()
        ph, pw = self.pooling

        x = input_data.data.reshape(self._isize.dims())
        windows = np.lib.stride_tricks.sliding_window_view(x, (ph, pw), axis=(1, 2))
        windows = windows[:, ::self.stride.height, ::self.stride.width]
        best = windows.reshape(depth, out_h, out_w, ph * pw).argmax(axis=-1).reshape(-1)

        np.add(self._corners, (best // pw) * width + best % pw, out=self._argmax)
        np.take(input_data.data, self._argmax, out=self._buff.data)
        self.mask.fill(0.0)
        self.mask.data[self._argmax] = 1.0
        self._activation.f(self._value, self._buff)
        return self._value

    def backward(self, input_data, idelta, propagate=True):
        self._activation.df(self._local, self._buff)
        self._local.mul(idelta)
        if propagate:
            self._delta.fill(0.0)
            # Overlapping windows may share a winner
            np.add.at(self._delta.data, self._argmax, self._local.data)

    def isize(self):
        return self._isize

    def osize(self):
        return self._osize

    def config(self):
        return {'isize': self._isize.dims(),
                'pooling': tuple(self.pooling),
                'stride': tuple(self.stride)}

    @classmethod
    def from_config(cls, config):
        return cls(Shape(*config['isize']), Pooling(*config['pooling']),
                   Stride(*config['stride']))

    def __repr__(self):
        return f"MaxPooling(isize={self._isize.dims()}, {self.pooling}, {self.stride})"
