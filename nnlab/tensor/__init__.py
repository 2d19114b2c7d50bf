"""
Tensor module: n-dimensional buffers and the linear-algebra kernel.
"""
from ._shape import Shape
from ._tensor import (
    BaseTensor,
    Tensor,
    Vector,
    Matrix,
    TensorView
)
from ._linear import Linear

__all__ = [
    'Shape',
    'BaseTensor',
    'Tensor',
    'Vector',
    'Matrix',
    'TensorView',
    'Linear'
]
