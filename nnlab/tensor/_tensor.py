"""
Owning and borrowing n-dimensional numeric buffers.

Every tensor keeps its elements in one flat, contiguous numpy array and a
Shape describing how to read it. ``Tensor`` (and its ``Vector``/``Matrix``
specializations) owns that array; ``TensorView`` borrows an array owned
elsewhere and never outlives it.

Element-wise kernels do not check shapes; mismatched operands are a caller
error.
"""
import numpy as np

from ._shape import Shape

DTYPE = np.float64


def _raw(value):
    """Return the flat buffer of a tensor, or the value itself."""
    if isinstance(value, BaseTensor):
        return value.data
    return value


class BaseTensor:
    """Element-wise algorithms shared by owning tensors and views."""

    # dimensionality of ``array``: 1 for vectors, 2 for matrices, 3 otherwise
    _ndim = 3

    def __init__(self, data, shape):
        self._data = data
        self._shape = shape

    @classmethod
    def _wrap(cls, data, shape):
        tensor = cls.__new__(cls)
        BaseTensor.__init__(tensor, data, shape)
        return tensor

    @property
    def shape(self):
        """Shape of the tensor."""
        return self._shape

    @property
    def size(self):
        """Total number of elements."""
        return self._shape.size

    @property
    def ndim(self):
        """Natural dimensionality of the tensor (1, 2 or 3)."""
        return self._ndim

    @property
    def dtype(self):
        return self._data.dtype

    @property
    def data(self):
        """Flat numpy view of the elements."""
        return self._data

    @property
    def array(self):
        """Numpy view of the elements in the tensor's natural dimensionality."""
        shape = self._shape
        if self._ndim == 1:
            return self._data
        if self._ndim == 2:
            return self._data.reshape(shape.depth * shape.height, shape.width)
        return self._data.reshape(shape.depth, shape.height, shape.width)

    def _flat_index(self, index):
        if len(index) == 2:
            i, j = index
            return i * self._shape.width + j
        d, i, j = index
        return (d * self._shape.height + i) * self._shape.width + j

    def __getitem__(self, index):
        if isinstance(index, tuple):
            return self._data[self._flat_index(index)]
        return self._data[index]

    def __setitem__(self, index, value):
        if isinstance(index, tuple):
            self._data[self._flat_index(index)] = value
        else:
            self._data[index] = value

    def __len__(self):
        return self._shape.size

    def __iter__(self):
        return iter(self._data)

    def __array__(self, dtype=None, copy=None):
        array = self.array
        if dtype is not None:
            array = array.astype(dtype, copy=False)
        if copy:
            array = array.copy()
        return array

    def fill(self, value):
        """
        Fill the tensor with a constant or with successive generator calls.

        Args:
            value (float or callable): Constant value, or a zero-argument
                callable producing one scalar per element.

        Returns:
            self
        """
        if callable(value):
            self._data[:] = np.fromiter(
                (value() for _ in range(self.size)), dtype=self._data.dtype, count=self.size)
        else:
            self._data.fill(value)
        return self

    def copy(self, source):
        """Copy the contents of ``source`` into this tensor."""
        np.copyto(self._data, np.reshape(_raw(source), -1))
        return self

    def clone(self):
        """Deep copy into a new owning tensor."""
        return _OWNING_TYPES[self._ndim]._wrap(self._data.copy(), self._shape)

    def view(self, shape=None):
        """Borrowing view over this tensor's memory, optionally with another shape."""
        return TensorView(self, shape)

    def reshape(self, shape):
        """
        Reinterpret the elements with another Shape of the same total size.

        Raises:
            ValueError: If the total size differs.
        """
        shape = Shape.of(shape)
        if shape.size != self._shape.size:
            raise ValueError(
                f"Cannot reshape tensor of size {self._shape.size} into {shape}")
        self._shape = shape
        return self

    def apply(self, function, out=None):
        """
        Apply a vectorized function to every element.

        Args:
            function (callable): Takes and returns a numpy array.
            out (BaseTensor, optional): Destination; pass ``self`` to work in place.

        Returns:
            BaseTensor: ``out``, or a new tensor when ``out`` is None.
        """
        result = self.clone() if out is None else out
        result.data[...] = function(self._data)
        return result

    def add(self, lhs, rhs=None):
        """``self += lhs``, or ``self = lhs + rhs`` in the two-operand form."""
        if rhs is None:
            np.add(self._data, _raw(lhs), out=self._data)
        else:
            np.add(_raw(lhs), _raw(rhs), out=self._data)
        return self

    def sub(self, lhs, rhs=None):
        """``self -= lhs``, or ``self = lhs - rhs`` in the two-operand form."""
        if rhs is None:
            np.subtract(self._data, _raw(lhs), out=self._data)
        else:
            np.subtract(_raw(lhs), _raw(rhs), out=self._data)
        return self

    def mul(self, lhs, rhs=None):
        """Element-wise ``self *= lhs``, or ``self = lhs * rhs``."""
        if rhs is None:
            np.multiply(self._data, _raw(lhs), out=self._data)
        else:
            np.multiply(_raw(lhs), _raw(rhs), out=self._data)
        return self

    def join(self, scalar, rhs=None):
        """``self *= scalar``, or ``self = scalar * rhs``."""
        if rhs is None:
            np.multiply(self._data, scalar, out=self._data)
        else:
            np.multiply(_raw(rhs), scalar, out=self._data)
        return self

    def __add__(self, other):
        return self.clone().add(other)

    __radd__ = __add__

    def __sub__(self, other):
        return self.clone().sub(other)

    def __rsub__(self, other):
        return self.clone().join(-1.0).add(other)

    def __mul__(self, other):
        return self.clone().mul(other)

    __rmul__ = __mul__

    def __neg__(self):
        return self.clone().join(-1.0)

    def __iadd__(self, other):
        return self.add(other)

    def __isub__(self, other):
        return self.sub(other)

    def __imul__(self, other):
        return self.mul(other)

    def __repr__(self):
        return f"{type(self).__name__}({self._shape!r}, data={self.array!r})"


class Tensor(BaseTensor):
    """
    Owning 3-D tensor.

    Args:
        shape (Shape, int or tuple, optional): Shape of the buffer.
        value (float, optional): Fill value; zeros when omitted.
        source (BaseTensor or array-like, optional): Elements to copy in.
            When ``shape`` is omitted it is taken from the source.
        dtype: numpy dtype of the elements.
    """

    def __init__(self, shape=None, value=None, source=None, dtype=DTYPE):
        if source is not None:
            raw = _raw(source)
            if shape is None:
                shape = source.shape if isinstance(source, BaseTensor) else np.shape(raw)
            shape = Shape.of(shape)
            data = np.array(raw, dtype=dtype).reshape(-1)
        else:
            shape = Shape(0, 0, 0) if shape is None else Shape.of(shape)
            if value is None:
                data = np.zeros(shape.size, dtype=dtype)
            else:
                data = np.full(shape.size, value, dtype=dtype)
        super().__init__(data, shape)

    def resize(self, shape):
        """Reallocate the buffer for a new Shape; previous contents are lost."""
        self._shape = Shape.of(shape)
        self._data = np.empty(self._shape.size, dtype=self._data.dtype)
        return self

    def move(self):
        """
        Transfer ownership of the buffer to a new tensor.

        The source is left empty (size 0) and any view taken from it keeps
        pointing at the moved buffer.
        """
        moved = type(self)._wrap(self._data, self._shape)
        self._data = np.empty(0, dtype=self._data.dtype)
        self._shape = Shape(0, 0, 0)
        return moved

    def __copy__(self):
        return self.clone()

    def __deepcopy__(self, memo):
        return self.clone()


class Vector(Tensor):
    """Owning tensor of Shape (1, 1, size)."""

    _ndim = 1

    def __init__(self, size=None, value=None, source=None, dtype=DTYPE):
        if size is None:
            size = np.size(_raw(source)) if source is not None else 0
        super().__init__(Shape(1, 1, size), value=value, source=source, dtype=dtype)


class Matrix(Tensor):
    """Owning tensor of Shape (1, rows, cols)."""

    _ndim = 2

    def __init__(self, rows=None, cols=None, value=None, source=None, dtype=DTYPE):
        if rows is None and source is not None:
            if isinstance(source, BaseTensor):
                rows, cols = source.shape.height, source.shape.width
            else:
                rows, cols = np.shape(source)
        super().__init__(Shape(1, rows or 0, cols or 0), value=value, source=source,
                         dtype=dtype)


class TensorView(BaseTensor):
    """
    Non-owning tensor over memory that belongs to someone else.

    Args:
        buffer (BaseTensor or numpy.ndarray): Owner of the memory. Arrays
            must be contiguous so that flattening them does not copy.
        shape (Shape, int or tuple, optional): Shape of the view; defaults
            to the owner's shape.
        ndim (int, optional): Natural dimensionality of ``array``.

    Raises:
        ValueError: If ``buffer`` is an array that cannot be flattened
            without copying.
    """

    def __init__(self, buffer, shape=None, ndim=None):
        if isinstance(buffer, BaseTensor):
            data = buffer.data
            if shape is None:
                shape = buffer.shape
                ndim = ndim or buffer.ndim
        else:
            data = buffer.reshape(-1)
            if data.size and not np.shares_memory(data, buffer):
                raise ValueError(
                    f"Cannot view a non-contiguous array of shape {buffer.shape}")
            if shape is None:
                shape = buffer.shape
                ndim = ndim or min(max(buffer.ndim, 1), 3)
        shape = Shape.of(shape)
        super().__init__(data[:shape.size], shape)
        self._ndim = ndim or 3


_OWNING_TYPES = {1: Vector, 2: Matrix, 3: Tensor}
