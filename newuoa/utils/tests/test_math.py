import numpy as np
import pytest

from ..math import get_arrays_tol, exact_1d_array, huge, max_abs_arrays


def test_get_arrays_tol():
    tol = get_arrays_tol(np.array([1.0, -2.0]), np.array([np.inf, 0.5, 3.0]))
    assert tol == 10.0 * np.finfo(float).eps * 3.0 * 3.0
    tol = get_arrays_tol(np.array([]))
    assert tol == 10.0 * np.finfo(float).eps
    with pytest.raises(ValueError):
        get_arrays_tol()


def test_exact_1d_array():
    np.testing.assert_array_equal(exact_1d_array(1.0, "message"), [1.0])
    np.testing.assert_array_equal(exact_1d_array([[1, 2]], "message"), [1.0, 2.0])
    assert exact_1d_array([1, 2], "message").dtype == float
    with pytest.raises(ValueError, match="message"):
        exact_1d_array([[1.0, 2.0], [3.0, 4.0]], "message")


def test_huge():
    assert np.isfinite(huge(float) ** 2.0)
    assert huge(float) > 1e30
    assert huge(np.float32) < huge(float)


def test_max_abs_arrays():
    assert max_abs_arrays(np.array([1.0, -5.0]), np.array([[np.inf, 2.0]])) == 5.0
    assert max_abs_arrays(np.array([0.1]), np.array([np.nan])) == 1.0
    assert max_abs_arrays(np.array([0.1]), initial=0.0) == 0.1
