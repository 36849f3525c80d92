import numpy as np


def get_arrays_tol(*arrays):
    """
    Get a relative tolerance for a set of arrays.

    The tolerance scales with the largest finite absolute value among the
    arrays and with their largest size.

    Parameters
    ----------
    *arrays: tuple
        Set of `arrays` to get the tolerance for.

    Returns
    -------
    float
        Relative tolerance for the set of arrays.

    Raises
    ------
    ValueError
        If no array is provided.
    """
    if len(arrays) == 0:
        raise ValueError('At least one array must be provided.')
    size = max(array.size for array in arrays)
    weight = max(np.max(np.abs(array[np.isfinite(array)]), initial=1.0) for array in arrays)
    return 10.0 * np.finfo(float).eps * max(size, 1.0) * weight


def exact_1d_array(x, message):
    """
    Convert `x` into a 1-dimensional array of floats.

    Raises
    ------
    ValueError
        If `x` cannot be interpreted as a 1-dimensional array, in which case
        `message` is the error message.
    """
    x = np.atleast_1d(np.squeeze(x)).astype(float)
    if x.ndim != 1:
        raise ValueError(message)
    return x


def huge(dtype):
    """
    Get a large value that can be squared without overflowing.

    It is used as a sentinel, e.g., for the reduction ratio of a step that
    does not decrease the model.
    """
    return 2.0 ** min(100.0, 0.5 * np.finfo(dtype).maxexp)


def max_abs_arrays(*arrays, initial=1.0):
    """
    Get the largest finite absolute value among several arrays.
    """
    return max(map(lambda array: np.max(np.abs(array[np.isfinite(array)]), initial=initial), arrays))
