"""
test_linear.py
~~~~~~~~~~~~~~

Unit tests for the Linear kernels.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from nnlab.tensor import Linear, Matrix, Shape, Tensor, Vector


@pytest.fixture
def linear():
    return Linear()


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.mark.unit
class TestDot:
    """Test vector/matrix products."""

    def test_vector_matrix(self, linear):
        """Test x . W for a row vector."""
        x = Vector(source=[1.0, 2.0])
        w = Matrix(source=[[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        result = Vector(3)
        linear.dot(result, x, w)
        assert_allclose(result.data, [9.0, 12.0, 15.0])

    def test_matrix_vector(self, linear):
        """Test W . v for a column vector."""
        w = Matrix(source=[[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        v = Vector(source=[1.0, 0.0, -1.0])
        result = Vector(2)
        linear.dot(result, w, v)
        assert_allclose(result.data, [-2.0, -2.0])

    def test_matrix_matrix(self, linear, rng):
        """Test the matrix product against numpy."""
        a = rng.normal(size=(3, 4))
        b = rng.normal(size=(4, 2))
        result = Matrix(3, 2)
        linear.dot(result, Matrix(source=a), Matrix(source=b))
        assert_allclose(result.array, a @ b)

    def test_three_dim_tensor_is_read_flat(self, linear):
        """Test that a 3-D tensor multiplies as its flat vector."""
        x = Tensor(Shape(2, 1, 2), source=[1.0, 1.0, 1.0, 1.0])
        w = Matrix(4, 1, value=1.0)
        result = Vector(1)
        linear.dot(result, x, w)
        assert result[0] == 4.0

    def test_vector_vector_raises(self, linear):
        """Test that two vector operands raise ValueError."""
        with pytest.raises(ValueError):
            linear.dot(Vector(1), Vector(source=[1.0, 2.0]), Vector(source=[3.0, 4.0]))


@pytest.mark.unit
class TestOuterAndTranspose:
    """Test tensordot and transpose."""

    def test_tensordot_is_outer_product(self, linear):
        """Test result(i, j) = col(i) * row(j)."""
        col = Vector(source=[1.0, 2.0])
        row = Vector(source=[3.0, 4.0, 5.0])
        result = Matrix(2, 3)
        linear.tensordot(result, col, row)
        assert_allclose(result.array, [[3.0, 4.0, 5.0], [6.0, 8.0, 10.0]])

    def test_transpose(self, linear):
        """Test transposing a rectangular matrix."""
        matrix = Matrix(source=[[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        transposed = linear.transpose(matrix)
        assert transposed.shape == Shape(1, 3, 2)
        assert_allclose(transposed.array, [[1.0, 4.0], [2.0, 5.0], [3.0, 6.0]])


@pytest.mark.unit
class TestElementWise:
    """Test the delegating element-wise wrappers."""

    def test_wrappers_write_into_result(self, linear):
        """Test add, sub, mul, join and apply through Linear."""
        a = Vector(source=[1.0, 4.0])
        b = Vector(source=[2.0, 2.0])
        result = Vector(2)

        assert_allclose(linear.add(result, a, b).data, [3.0, 6.0])
        assert_allclose(linear.sub(result, a, b).data, [-1.0, 2.0])
        assert_allclose(linear.mul(result, a, b).data, [2.0, 8.0])
        assert_allclose(linear.join(result, 0.5, a).data, [0.5, 2.0])
        assert_allclose(linear.apply(result, np.sqrt, a).data, [1.0, 2.0])


@pytest.mark.unit
class TestInverse:
    """Test Gauss-Jordan inversion."""

    def test_inverse_times_matrix_is_identity(self, linear, rng):
        """Test that A . inverse(A) is the identity."""
        a = rng.normal(size=(4, 4)) + 4.0 * np.eye(4)
        inverse = linear.inverse(Matrix(source=a))
        assert_allclose(a @ inverse.array, np.eye(4), atol=1e-10)

    def test_inverse_needs_pivoting(self, linear):
        """Test a matrix with a zero on the leading diagonal."""
        a = np.array([[0.0, 1.0], [2.0, 0.0]])
        inverse = linear.inverse(Matrix(source=a))
        assert_allclose(inverse.array, [[0.0, 0.5], [1.0, 0.0]])

    def test_inverse_leaves_source_untouched(self, linear):
        """Test that the input matrix is not modified."""
        a = np.array([[2.0, 1.0], [1.0, 3.0]])
        matrix = Matrix(source=a)
        linear.inverse(matrix)
        assert_allclose(matrix.array, a)

    def test_singular_matrix_raises(self, linear):
        """Test that a singular matrix raises ValueError."""
        with pytest.raises(ValueError):
            linear.inverse(Matrix(source=[[1.0, 2.0], [2.0, 4.0]]))

    def test_non_square_matrix_raises(self, linear):
        """Test that a rectangular matrix raises ValueError."""
        with pytest.raises(ValueError):
            linear.inverse(Matrix(2, 3))
