from .exceptions import CallbackSuccess
from .math import get_arrays_tol, exact_1d_array, huge, max_abs_arrays
from .structs import Window
from ._show_versions import show_versions

__all__ = ['CallbackSuccess', 'Window', 'get_arrays_tol', 'exact_1d_array', 'huge', 'max_abs_arrays', 'show_versions']
