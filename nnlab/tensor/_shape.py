"""
Shape of an n-dimensional buffer.
"""


class Shape:
    """
    Depth, height and width of a tensor plus its total element count.

    Vectors use (1, 1, n) and matrices (1, rows, cols). The triple is
    treated as immutable: layers hand the same Shape object around freely.
    """

    __slots__ = ('depth', 'height', 'width', 'size')

    def __init__(self, depth=1, height=1, width=1):
        self.depth = int(depth)
        self.height = int(height)
        self.width = int(width)
        self.size = self.depth * self.height * self.width

    @classmethod
    def of(cls, value):
        """
        Coerce a Shape, an int or a tuple of 1-3 ints into a Shape.

        Missing leading dimensions are 1, so ``Shape.of(5)`` is (1, 1, 5)
        and ``Shape.of((3, 4))`` is (1, 3, 4).
        """
        if isinstance(value, Shape):
            return value
        if hasattr(value, '__index__'):
            return cls(1, 1, int(value))

        dims = tuple(int(v) for v in value)
        if not 1 <= len(dims) <= 3:
            raise ValueError(f"Shape needs 1 to 3 dimensions, got {len(dims)}")
        return cls(*((1,) * (3 - len(dims)) + dims))

    def dims(self):
        """Return (depth, height, width)."""
        return (self.depth, self.height, self.width)

    def __iter__(self):
        return iter(self.dims())

    def __eq__(self, other):
        if not isinstance(other, Shape):
            return NotImplemented
        return self.dims() == other.dims()

    def __hash__(self):
        return hash(self.dims())

    def __repr__(self):
        return f"Shape(depth={self.depth}, height={self.height}, width={self.width})"
