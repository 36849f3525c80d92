from inspect import signature

import numpy as np
from scipy.optimize import Bounds, OptimizeResult

from .settings import ExitStatus, Options, PRINT_OPTIONS
from .utils import CallbackSuccess, get_arrays_tol
from .utils import exact_1d_array


class ObjectiveFunction:
    """
    Real-valued objective function.
    """

    def __init__(self, fun, verbose, debug, *args):
        """
        Initialize the objective function.

        Parameters
        ----------
        fun : callable
            Function to evaluate.

                ``fun(x, *args) -> float``

            where ``x`` is an array with shape (n,) and `args` is a tuple.
        verbose : bool
            Whether to print the function evaluations.
        debug : bool
            Whether to make debugging tests during the execution.
        *args : tuple
            Additional arguments to be passed to the function.
        """
        if debug:
            assert callable(fun)
            assert isinstance(verbose, bool)
            assert isinstance(debug, bool)

        self._fun = fun
        self._verbose = verbose
        self._args = args
        self._n_eval = 0

    def __call__(self, x):
        """
        Evaluate the objective function.

        The function is not called at a point that contains NaN entries, and
        its value at such a point is NaN. The evaluation is counted anyway.

        Parameters
        ----------
        x : array_like, shape (n,)
            Point at which the objective function is evaluated.

        Returns
        -------
        float
            Function value at `x`.
        """
        x = np.array(x, dtype=float)
        if np.any(np.isnan(x)):
            f = np.nan
        else:
            f = float(np.squeeze(self._fun(x, *self._args)))
        self._n_eval += 1
        if self._verbose:
            with np.printoptions(**PRINT_OPTIONS):
                print(f"{self.name}({x}) = {f}")
        return f

    @property
    def n_eval(self):
        """
        Number of function evaluations.

        Returns
        -------
        int
            Number of function evaluations.
        """
        return self._n_eval

    @property
    def name(self):
        """
        Name of the objective function.

        Returns
        -------
        str
            Name of the objective function.
        """
        try:
            return self._fun.__name__
        except AttributeError:
            return "fun"


class BoundConstraints:
    """
    Bound constraints ``xl <= x <= xu``.
    """

    def __init__(self, bounds):
        """
        Initialize the bound constraints.

        Parameters
        ----------
        bounds : scipy.optimize.Bounds
            Bound constraints.
        """
        self._xl = np.array(bounds.lb, float)
        self._xu = np.array(bounds.ub, float)

        # Remove the ill-defined bounds.
        self.xl[np.isnan(self.xl)] = -np.inf
        self.xu[np.isnan(self.xu)] = np.inf

    @property
    def xl(self):
        """
        Lower bound.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Lower bound.
        """
        return self._xl

    @property
    def xu(self):
        """
        Upper bound.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Upper bound.
        """
        return self._xu

    @property
    def is_feasible(self):
        """
        Whether the bound constraints are feasible.

        Returns
        -------
        bool
            Whether the bound constraints are feasible.
        """
        return bool(
            np.all(self.xl <= self.xu)
            and np.all(self.xl < np.inf)
            and np.all(self.xu > -np.inf)
        )

    def maxcv(self, x):
        """
        Evaluate the maximum constraint violation.

        Parameters
        ----------
        x : array_like, shape (n,)
            Point at which the maximum constraint violation is evaluated.

        Returns
        -------
        float
            Maximum constraint violation at `x`.
        """
        x = np.asarray(x, dtype=float)
        val = np.max(self.xl - x, initial=0.0)
        return float(np.max(x - self.xu, initial=val))

    def project(self, x):
        """
        Project a point onto the feasible set.

        Parameters
        ----------
        x : array_like, shape (n,)
            Point to be projected.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Projection of `x` onto the feasible set.
        """
        return np.clip(x, self.xl, self.xu) if self.is_feasible else x


class Problem:
    """
    Optimization problem.
    """

    def __init__(
        self,
        obj,
        x0,
        bounds,
        callback,
        store_history,
        history_size,
        debug,
    ):
        """
        Initialize the problem.

        The problem is preprocessed to remove all the variables that are fixed
        by the bound constraints.

        Parameters
        ----------
        obj : ObjectiveFunction
            Objective function.
        x0 : array_like, shape (n,)
            Initial guess.
        bounds : BoundConstraints
            Bound constraints.
        callback : {callable, None}
            Callback function.
        store_history : bool
            Whether to store the function evaluations.
        history_size : int
            Maximum number of function evaluations to store.
        debug : bool
            Whether to make debugging tests during the execution.
        """
        if debug:
            assert isinstance(obj, ObjectiveFunction)
            assert isinstance(bounds, BoundConstraints)
            assert isinstance(store_history, bool)
            assert isinstance(history_size, int)
            assert history_size >= 0
            assert isinstance(debug, bool)

        self._obj = obj
        if callback is not None:
            if not callable(callback):
                raise TypeError("The callback must be a callable function.")
        self._callback = callback

        # Check the consistency of the problem.
        x0 = exact_1d_array(x0, "The initial guess must be a vector.")
        n = x0.size
        if bounds.xl.size != n or bounds.xu.size != n:
            raise ValueError(f"The bounds must have {n} elements.")

        # Check which variables are fixed.
        tol = get_arrays_tol(bounds.xl, bounds.xu)
        self._fixed_idx = (
            (bounds.xl <= bounds.xu)
            & (np.abs(bounds.xl - bounds.xu) < tol)
        )
        self._fixed_val = 0.5 * (
            bounds.xl[self._fixed_idx] + bounds.xu[self._fixed_idx]
        )
        self._fixed_val = np.clip(
            self._fixed_val,
            bounds.xl[self._fixed_idx],
            bounds.xu[self._fixed_idx],
        )

        # Set the bound constraints.
        self._orig_bounds = bounds
        self._bounds = BoundConstraints(
            Bounds(bounds.xl[~self._fixed_idx], bounds.xu[~self._fixed_idx])
        )

        # Set the initial guess.
        self._x0 = self._bounds.project(x0[~self._fixed_idx])

        # Set the initial history.
        self._store_history = store_history
        self._history_size = history_size
        self._fun_history = []
        self._x_history = []

    def __call__(self, x):
        """
        Evaluate the objective function.

        Parameters
        ----------
        x : array_like, shape (n,)
            Point at which the objective function is evaluated.

        Returns
        -------
        float
            Objective function value.

        Raises
        ------
        `newuoa.utils.CallbackSuccess`
            If the callback function raises a ``StopIteration``. The objective
            function value at `x` is carried by the exception.
        """
        x = np.asarray(x, dtype=float)
        x_full = self.build_x(x)
        fun_val = self._obj(x_full)
        if self._store_history and self._history_size > 0:
            if len(self._fun_history) < self._history_size:
                self._fun_history.append(fun_val)
                self._x_history.append(x_full)
            else:
                # The oldest entry is overwritten.
                k = (self.n_eval - 1) % self._history_size
                self._fun_history[k] = fun_val
                self._x_history[k] = x_full

        if self._callback is not None:
            sig = signature(self._callback)
            try:
                if set(sig.parameters) == {"intermediate_result"}:
                    intermediate_result = OptimizeResult(x=x_full, fun=fun_val)
                    self._callback(intermediate_result)
                else:
                    self._callback(x_full)
            except StopIteration as exc:
                raise CallbackSuccess(fun_val) from exc

        return fun_val

    @property
    def n(self):
        """
        Number of variables.

        Returns
        -------
        int
            Number of variables.
        """
        return self.x0.size

    @property
    def n_orig(self):
        """
        Number of variables in the original problem (with fixed variables).

        Returns
        -------
        int
            Number of variables in the original problem (with fixed variables).
        """
        return self._fixed_idx.size

    @property
    def x0(self):
        """
        Initial guess.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Initial guess.
        """
        return self._x0

    @property
    def n_eval(self):
        """
        Number of function evaluations.

        Returns
        -------
        int
            Number of function evaluations.
        """
        return self._obj.n_eval

    @property
    def fun_name(self):
        """
        Name of the objective function.

        Returns
        -------
        str
            Name of the objective function.
        """
        return self._obj.name

    @property
    def bounds(self):
        """
        Bound constraints.

        Returns
        -------
        BoundConstraints
            Bound constraints.
        """
        return self._bounds

    @property
    def fun_history(self):
        """
        History of objective function evaluations, from the oldest to the
        most recent.

        Returns
        -------
        `numpy.ndarray`, shape (n_hist,)
            History of objective function evaluations.
        """
        return self._chronological(np.array(self._fun_history, dtype=float))

    @property
    def x_history(self):
        """
        History of the points at which the objective function was evaluated,
        from the oldest to the most recent.

        Returns
        -------
        `numpy.ndarray`, shape (n_hist, n_orig)
            History of the points.
        """
        x_history = np.array(self._x_history, dtype=float).reshape((-1, self.n_orig))
        return self._chronological(x_history)

    def build_x(self, x):
        """
        Build the full vector of variables from the reduced vector.

        Parameters
        ----------
        x : array_like, shape (n,)
            Reduced vector of variables.

        Returns
        -------
        `numpy.ndarray`, shape (n_orig,)
            Full vector of variables.
        """
        x_full = np.empty(self.n_orig)
        x_full[self._fixed_idx] = self._fixed_val
        x_full[~self._fixed_idx] = x
        return self._orig_bounds.project(x_full)

    def maxcv(self, x):
        """
        Evaluate the maximum constraint violation.

        Parameters
        ----------
        x : array_like, shape (n,)
            Point at which the maximum constraint violation is evaluated.

        Returns
        -------
        float
            Maximum constraint violation at `x`.
        """
        return self.bounds.maxcv(x)

    def _chronological(self, history):
        if self.n_eval > self._history_size > 0 and len(history) == self._history_size:
            history = np.roll(history, -(self.n_eval % self._history_size), axis=0)
        return history


def check_exit(n_eval, fun_val, x, options):
    """
    Check whether the optimization procedure must stop after an evaluation.

    Parameters
    ----------
    n_eval : int
        Number of function evaluations so far.
    fun_val : float
        Objective function value at `x`.
    x : `numpy.ndarray`, shape (n,)
        Point at which the objective function was evaluated.
    options : dict
        Options of the solver.

    Returns
    -------
    {ExitStatus, None}
        Reason for stopping, or None if the optimization procedure continues.
        When several reasons hold, the budget prevails over the target, which
        prevails over the invalid values.
    """
    status = None
    if not np.all(np.isfinite(x)):
        status = ExitStatus.NAN_INF_X_ERROR
    if np.isnan(fun_val) or fun_val == np.inf:
        status = ExitStatus.NAN_INF_F_ERROR
    if fun_val <= options[Options.TARGET]:
        status = ExitStatus.TARGET_SUCCESS
    if n_eval >= options[Options.MAX_EVAL]:
        status = ExitStatus.MAX_EVAL_WARNING
    return status
