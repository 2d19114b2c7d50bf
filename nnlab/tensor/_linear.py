"""
Stateless linear-algebra kernels over tensors.
"""
import numpy as np

from ._tensor import Matrix


class Linear:
    """
    Linear algebra over Tensor, Vector, Matrix and TensorView.

    A tensor whose natural dimensionality is 2 is read as a matrix; every
    other tensor is read as a flat vector, so a 3-D activation can feed a
    fully-connected layer without being copied.
    """

    def dot(self, result, lhs, rhs):
        """
        Vector-matrix, matrix-vector or matrix-matrix product into ``result``.

        Args:
            result (BaseTensor): Destination, overwritten.
            lhs (BaseTensor): Left operand.
            rhs (BaseTensor): Right operand.

        Returns:
            BaseTensor: ``result``

        Raises:
            ValueError: If neither operand is a matrix.
        """
        if lhs.ndim != 2 and rhs.ndim != 2:
            raise ValueError(
                f"dot needs at least one matrix operand, got ndim {lhs.ndim} and {rhs.ndim}")
        if lhs.ndim == 2 and rhs.ndim == 2:
            out = result.data.reshape(lhs.shape.height, rhs.shape.width)
            np.matmul(lhs.array, rhs.array, out=out)
        elif rhs.ndim == 2:
            np.dot(lhs.data, rhs.array, out=result.data)
        else:
            np.dot(lhs.array, rhs.data, out=result.data)
        return result

    def tensordot(self, result, col, row):
        """Outer product: ``result(i, j) = col(i) * row(j)``."""
        out = result.data.reshape(col.size, row.size)
        np.outer(col.data, row.data, out=out)
        return result

    def transpose(self, matrix, out=None):
        """Transpose of a matrix, written to ``out`` or a new Matrix."""
        rows, cols = matrix.shape.height, matrix.shape.width
        if out is None:
            out = Matrix(cols, rows)
        np.copyto(out.data.reshape(cols, rows), matrix.array.T)
        return out

    def inverse(self, matrix, out=None):
        """
        Inverse of a square matrix by Gauss-Jordan elimination.

        Rows are pivoted on the largest absolute value of the current column.
        A scratch copy of ``matrix`` is reduced to the identity while ``out``,
        started from the identity, turns into the inverse; ``matrix`` itself
        is left untouched.

        Raises:
            ValueError: If the matrix is not square or is singular.
        """
        n = matrix.shape.height
        if matrix.shape.width != n:
            raise ValueError(f"Only square matrices can be inverted, got {matrix.shape}")

        source = matrix.array.copy()
        if out is None:
            out = Matrix(n, n)
        inverse = out.data.reshape(n, n)
        inverse[...] = np.eye(n)

        for k in range(n):
            pivot = k + int(np.argmax(np.abs(source[k:, k])))
            if source[pivot, k] == 0.0:
                raise ValueError("Matrix is singular and cannot be inverted")
            if pivot != k:
                source[[k, pivot]] = source[[pivot, k]]
                inverse[[k, pivot]] = inverse[[pivot, k]]

            scale = 1.0 / source[k, k]
            source[k] *= scale
            inverse[k] *= scale

            factors = source[:, k].copy()
            factors[k] = 0.0
            source -= np.outer(factors, source[k])
            inverse -= np.outer(factors, inverse[k])

        return out

    def add(self, result, lhs, rhs=None):
        return result.add(lhs, rhs)

    def sub(self, result, lhs, rhs=None):
        return result.sub(lhs, rhs)

    def mul(self, result, lhs, rhs=None):
        return result.mul(lhs, rhs)

    def join(self, result, scalar, rhs=None):
        return result.join(scalar, rhs)

    def apply(self, result, function, source=None):
        """``result = function(source)``; in place when ``source`` is omitted."""
        source = result if source is None else source
        return source.apply(function, out=result)
