import logging
import warnings

import numpy as np
from scipy.optimize import Bounds, OptimizeResult

from .framework import TrustRegion
from .problem import ObjectiveFunction, BoundConstraints, Problem, check_exit
from .settings import ExitStatus, Options, DEFAULT_OPTIONS, PRINT_OPTIONS
from .utils import CallbackSuccess, exact_1d_array

_log = logging.getLogger(__name__)


def minimize(fun, x0, args=(), bounds=None, callback=None, options=None):
    r"""
    Minimize a scalar function using the NEWUOA method.

    The NEWUOA method is a derivative-free trust-region method designed by
    Powell [1]_. At each iteration, the objective function is modeled by a
    quadratic function that interpolates it at ``npt`` points, the freedom
    left in the model being taken up by minimizing the Frobenius norm of the
    change of its Hessian matrix.

    Parameters
    ----------
    fun : callable
        Objective function to be minimized.

            ``fun(x, *args) -> float``

        where ``x`` is an array with shape (n,) and `args` is a tuple.
    x0 : array_like, shape (n,)
        Initial guess.
    args : tuple, optional
        Extra arguments passed to the objective function.
    bounds : {`scipy.optimize.Bounds`, array_like, shape (n, 2)}, optional
        Bound constraints of the problem. It can be one of the cases below.

        #. An instance of `scipy.optimize.Bounds`.
        #. An array with shape (n, 2). The bound constraints for ``x[i]`` are
           ``bounds[i][0] <= x[i] <= bounds[i][1]``. Set ``bounds[i][0]`` to
           :math:`-\infty` if there is no lower bound, and set ``bounds[i][1]``
           to :math:`\infty` if there is no upper bound.

        The objective function is only evaluated at points satisfying the
        bound constraints.
    callback : callable, optional
        A callback executed at each objective function evaluation. The method
        terminates if a ``StopIteration`` exception is raised by the callback.
        It should have the signature:

            ``callback(intermediate_result)``

        where ``intermediate_result`` is an instance of
        `scipy.optimize.OptimizeResult`, with attributes ``x`` and ``fun``,
        being the point at which the objective function is evaluated and the
        value of the objective function, respectively. The signature
        ``callback(x)`` is also accepted.
    options : dict, optional
        Options passed to the solver. Accepted keys are:

            disp : bool, optional
                Whether to print information about the optimization procedure.
            maxfev : int, optional
                Maximum number of function evaluations.
            maxiter : int, optional
                Maximum number of iterations.
            target : float, optional
                Target on the objective function value. The optimization
                procedure is terminated when the objective function value is
                less than or equal to this target.
            rhobeg : float, optional
                Initial trust-region radius.
            rhoend : float, optional
                Final trust-region radius.
            npt : int, optional
                Number of interpolation points.
            eta1, eta2 : float, optional
                Thresholds on the reduction ratio for decreasing and increasing
                the trust-region radius.
            gamma1, gamma2 : float, optional
                Factors for decreasing and increasing the trust-region radius.
            store_history : bool, optional
                Whether to store the history of the function evaluations.
            maxhist : int, optional
                Maximum number of function evaluations to store in the history.
            debug : bool, optional
                Whether to perform additional checks. This option should be
                used only for debugging purposes and is highly discouraged.

    Returns
    -------
    `scipy.optimize.OptimizeResult`
        Result of the optimization procedure, with the following fields:

            message : str
                Description of the cause of the termination.
            success : bool
                Whether the optimization procedure terminated successfully.
            status : int
                Termination status of the optimization procedure.
            x : `numpy.ndarray`, shape (n,)
                Solution point.
            fun : float
                Objective function value at the solution point.
            maxcv : float
                Maximum bound violation at the solution point.
            nit : int
                Number of iterations.
            nfev : int
                Number of function evaluations.

        If the ``store_history`` option is True, the result also has the
        following fields:

            fun_history : `numpy.ndarray`, shape (nhist,)
                History of the objective function values.
            x_history : `numpy.ndarray`, shape (nhist, n)
                History of the points at which the objective function was
                evaluated.

        A description of the termination statuses is given below.

        .. list-table::
            :widths: 25 75
            :header-rows: 1

            * - Exit status
              - Description
            * - 0
              - The lower bound for the trust-region radius has been reached.
            * - 1
              - The target objective function value has been reached.
            * - 2
              - All variables are fixed by the bound constraints.
            * - 3
              - The callback requested to stop the optimization procedure.
            * - 4
              - The maximum number of function evaluations has been exceeded.
            * - 5
              - The maximum number of iterations has been exceeded.
            * - -1
              - The bound constraints are infeasible.
            * - -2
              - A linear algebra error occurred.
            * - -3
              - A point with NaN or infinite entries has been generated.
            * - -4
              - The objective function returned NaN or an infinite value.

    References
    ----------
    .. [1] M. J. D. Powell. The NEWUOA software for unconstrained optimization
       without derivatives. In G. Di Pillo and M. Roma, editors, *Large-Scale
       Nonlinear Optimization*, volume 83 of *Nonconvex Optimization and Its
       Applications*, pages 255--297. Springer, Boston, MA, USA, 2006.

    Examples
    --------
    .. testsetup::

        import numpy as np
        np.set_printoptions(precision=3, suppress=True)

    >>> import numpy as np
    >>> from newuoa import minimize

    We minimize the convex quadratic function

    >>> def fun(x):
    ...     return (x[0] - 5.0) ** 2.0 + (x[1] - 4.0) ** 2.0

    starting from the origin:

    >>> res = minimize(fun, [0.0, 0.0])
    >>> res.x
    array([5., 4.])

    Bound constraints can be provided as an array with shape (n, 2):

    >>> res = minimize(fun, [0.0, 0.0], bounds=[[0.0, 3.0], [0.0, 10.0]])
    >>> res.x
    array([3., 4.])
    """
    # Get basic options that are needed for the initialization.
    if options is None:
        options = {}
    else:
        options = dict(options)
    verbose = options.get(Options.VERBOSE, DEFAULT_OPTIONS[Options.VERBOSE])
    verbose = bool(verbose)
    store_history = options.get(Options.STORE_HISTORY, DEFAULT_OPTIONS[Options.STORE_HISTORY])
    store_history = bool(store_history)
    if Options.HISTORY_SIZE in options and options[Options.HISTORY_SIZE] < 0:
        raise ValueError('The size of the history must be nonnegative.')
    history_size = options.get(Options.HISTORY_SIZE, DEFAULT_OPTIONS[Options.HISTORY_SIZE])
    history_size = int(history_size)
    debug = options.get(Options.DEBUG, DEFAULT_OPTIONS[Options.DEBUG])
    debug = bool(debug)

    # Initialize the objective function.
    if not callable(fun):
        raise TypeError('The objective function must be a callable function.')
    if not isinstance(args, tuple):
        args = (args,)
    obj = ObjectiveFunction(fun, verbose, debug, *args)

    # Initialize the bound constraints.
    x0 = exact_1d_array(x0, 'The initial guess must be a vector.')
    xl, xu = _get_bounds(bounds, x0.size)
    bounds = BoundConstraints(Bounds(xl, xu))

    # Initialize the problem (and remove the fixed variables).
    pb = Problem(obj, x0, bounds, callback, store_history, history_size, debug)

    # Set the default options.
    _set_default_options(options, pb.n)

    # Skip the computations whenever possible.
    if not pb.bounds.is_feasible:
        # The bound constraints are infeasible.
        return _build_result(pb, pb.x0, np.nan, ExitStatus.INFEASIBLE_ERROR, 0, options)
    elif pb.n == 0:
        # All variables are fixed by the bound constraints.
        try:
            fun_val = pb(pb.x0)
        except CallbackSuccess as exc:
            fun_val = exc.value
        return _build_result(pb, pb.x0, fun_val, ExitStatus.FIXED_SUCCESS, 0, options)
    if verbose:
        print('Starting the optimization procedure.')
        print(f'Initial trust-region radius: {options[Options.RHOBEG]}.')
        print(f'Final trust-region radius: {options[Options.RHOEND]}.')
        print(f'Number of interpolation points: {options[Options.NPT]}.')
        print(f'Maximum number of function evaluations: {options[Options.MAX_EVAL]}.')
        print(f'Maximum number of iterations: {options[Options.MAX_ITER]}.')
        print()

    # Build the initial models. The objective function is evaluated at the
    # initial interpolation points, and the procedure may stop already.
    framework = TrustRegion(pb, options)
    status = framework.models.status_init
    x_last = framework.models.interpolation.point(pb.n_eval - 1)
    fun_last = framework.models.fun_val[pb.n_eval - 1]

    # Start the optimization procedure.
    _log.debug("Start the main loop")
    n_iter = 0
    n_alt_models = 0
    step = np.zeros(pb.n)
    short_step = False
    while status is None:
        # Stop the optimization procedure if the maximum number of iterations
        # has been exceeded. We do not write the main loop as a for loop because
        # we want to access the number of iterations outside the loop.
        if n_iter >= options[Options.MAX_ITER]:
            status = ExitStatus.MAX_ITER_WARNING
            break
        n_iter += 1

        # Evaluate the trial step.
        step, crvmin = framework.get_trust_region_step(options)
        s_norm = min(framework.radius, np.linalg.norm(step))

        # If the trial step is too short, we do not attempt to evaluate the
        # objective function. Instead, we reduce the trust-region radius and
        # check whether the resolution should be reduced and whether the
        # geometry of the interpolation set should be improved.
        short_step = s_norm < 0.5 * framework.resolution
        if short_step:
            framework.shrink_radius()
            bad_step_resolution = True
            bad_step_geometry = True
        else:
            framework.dnorm_window.push(s_norm)
            x_last, fun_last, status = _eval(pb, framework, step, options)
            if status is not None:
                break

            # Update the trust-region radius.
            model_decrease = framework.models.fun_decrease(step)
            framework.moderr_window.push(fun_last - framework.fun_best + model_decrease)
            ratio = framework.get_reduction_ratio(fun_last, model_decrease)
            framework.update_radius(s_norm, ratio, options)

            # Update the interpolation set.
            k_new = framework.get_index_to_remove(step, fun_last < framework.fun_best)
            if debug:
                assert ratio <= 0.0 or k_new is not None, 'No interpolation point to replace.'
            try:
                framework.models.update_interpolation(k_new, step, fun_last)
            except np.linalg.LinAlgError:
                status = ExitStatus.LINALG_ERROR
                break

            # Attempt to replace the model by the alternative one.
            if k_new is not None and framework.radius <= framework.resolution:
                if ratio > 0.01:
                    n_alt_models = 0
                else:
                    grad = framework.models.fun_grad(framework.x_best)
                    grad_alt = framework.models.fun_alt_grad(framework.x_best)
                    if grad @ grad < 100.0 * (grad_alt @ grad_alt):
                        n_alt_models = 0
                    else:
                        n_alt_models += 1
                if n_alt_models >= 3:
                    _log.debug("Replacing the model by the alternative one")
                    framework.models.reset_models()
                    n_alt_models = 0
            bad_step_resolution = ratio <= 0.0 or k_new is None
            bad_step_geometry = ratio < 0.1 or k_new is None

        # Check whether the resolution should be reduced and whether the
        # geometry of the interpolation set should be improved.
        dist_sq = framework.get_dist_sq()
        resolution = framework.resolution
        reduce_resolution = (
            short_step
            and framework.moderr_window.all(lambda moderr: np.abs(moderr) <= 0.125 * crvmin * resolution ** 2.0)
            and framework.dnorm_window.all(lambda dnorm: dnorm <= resolution)
        )
        reduce_resolution = reduce_resolution or (
            bad_step_resolution
            and np.all(dist_sq <= 4.0 * framework.radius ** 2.0)
            and max(framework.radius, s_norm) <= resolution
        )
        improve_geometry = not reduce_resolution and bad_step_geometry and np.any(dist_sq > 4.0 * framework.radius ** 2.0)

        # Improve the geometry of the interpolation set if necessary.
        if improve_geometry:
            k_new = int(np.argmax(dist_sq))
            delbar = max(min(0.1 * np.sqrt(dist_sq[k_new]), 0.5 * framework.radius), resolution)
            step = framework.get_geometry_step(k_new, delbar, options)
            framework.dnorm_window.push(min(delbar, np.linalg.norm(step)))
            x_last, fun_last, status = _eval(pb, framework, step, options)
            if status is not None:
                break
            framework.moderr_window.push(fun_last - framework.fun_best + framework.models.fun_decrease(step))
            try:
                framework.models.update_interpolation(k_new, step, fun_last)
            except np.linalg.LinAlgError:
                status = ExitStatus.LINALG_ERROR
                break

        # Reduce the resolution if necessary.
        if reduce_resolution:
            if framework.resolution <= options[Options.RHOEND]:
                status = ExitStatus.RADIUS_SUCCESS
                break
            framework.reduce_resolution(options)
            if verbose:
                _print_step(f'New trust-region radius: {framework.resolution}', pb, pb.build_x(framework.x_best), framework.fun_best, pb.n_eval, n_iter)
                print()

        # Update the point around which the quadratic models are built.
        x_shift = framework.x_best - framework.models.interpolation.x_base
        if x_shift @ x_shift >= 1e3 * framework.radius ** 2.0:
            framework.shift_x_base(options)

    # The untried short step is evaluated if the budget allows it.
    if status == ExitStatus.RADIUS_SUCCESS and short_step and pb.n_eval < options[Options.MAX_EVAL]:
        x_last, fun_last, _ = _eval(pb, framework, step, options)

    # Return the last evaluated point, unless it is invalid or worse than the
    # best one.
    if status == ExitStatus.NAN_INF_X_ERROR or np.isnan(fun_last) or framework.fun_best < fun_last:
        x, fun_val = framework.x_best, framework.fun_best
    else:
        x, fun_val = x_last, fun_last
    _log.debug(f"Termination with status {status}")
    result = _build_result(pb, x, fun_val, status, n_iter, options)
    if debug:
        assert not np.any(np.isnan(result.x)), 'The returned point contains NaN.'
        if store_history:
            assert not np.any(result.fun_history < result.fun), 'The returned point is not the best one.'
    return result


def _get_bounds(bounds, n):
    """
    Uniformize the bounds.
    """
    if bounds is None:
        return np.full(n, -np.inf), np.full(n, np.inf)
    elif isinstance(bounds, Bounds):
        xl = np.asarray(bounds.lb, dtype=float)
        xu = np.asarray(bounds.ub, dtype=float)
        if xl.size == 1:
            xl = np.full(n, xl.item())
        if xu.size == 1:
            xu = np.full(n, xu.item())
        if xl.shape != (n,) or xu.shape != (n,):
            raise ValueError(f'The bounds must have {n} elements.')
        return xl, xu
    elif hasattr(bounds, '__len__'):
        bounds = np.asarray(bounds, dtype=float)
        if bounds.shape != (n, 2):
            raise ValueError('The shape of the bounds is not compatible with the number of variables.')
        return bounds[:, 0], bounds[:, 1]
    else:
        raise TypeError('The bounds must be an instance of scipy.optimize.Bounds or an array-like object.')


def _set_default_options(options, n):
    """
    Set the default options.
    """
    if Options.RHOBEG in options and not options[Options.RHOBEG] > 0.0:
        raise ValueError('The initial trust-region radius must be positive.')
    if Options.RHOEND in options and not options[Options.RHOEND] > 0.0:
        raise ValueError('The final trust-region radius must be positive.')
    if Options.RHOBEG in options and Options.RHOEND in options:
        if options[Options.RHOBEG] < options[Options.RHOEND]:
            raise ValueError('The initial trust-region radius must be greater than or equal to the final trust-region radius.')
    elif Options.RHOBEG in options:
        options[Options.RHOEND.value] = min(DEFAULT_OPTIONS[Options.RHOEND], options[Options.RHOBEG])
    elif Options.RHOEND in options:
        options[Options.RHOBEG.value] = max(DEFAULT_OPTIONS[Options.RHOBEG], options[Options.RHOEND])
    else:
        options[Options.RHOBEG.value] = DEFAULT_OPTIONS[Options.RHOBEG]
        options[Options.RHOEND.value] = DEFAULT_OPTIONS[Options.RHOEND]
    options[Options.RHOBEG.value] = float(options[Options.RHOBEG])
    options[Options.RHOEND.value] = float(options[Options.RHOEND])
    if Options.NPT in options and n > 0 and not n + 2 <= options[Options.NPT] <= ((n + 1) * (n + 2)) // 2:
        raise ValueError(f'The number of interpolation points must be between {n + 2} and {((n + 1) * (n + 2)) // 2}.')
    options.setdefault(Options.NPT.value, DEFAULT_OPTIONS[Options.NPT](n))
    options[Options.NPT.value] = int(options[Options.NPT])
    if Options.MAX_EVAL in options and n > 0 and options[Options.MAX_EVAL] < options[Options.NPT] + 1:
        raise ValueError(f'The maximum number of function evaluations must be at least {options[Options.NPT] + 1}.')
    if Options.MAX_EVAL in options and options[Options.MAX_EVAL] <= 0:
        raise ValueError('The maximum number of function evaluations must be positive.')
    options.setdefault(Options.MAX_EVAL.value, max(DEFAULT_OPTIONS[Options.MAX_EVAL](n), options[Options.NPT] + 1))
    options[Options.MAX_EVAL.value] = int(options[Options.MAX_EVAL])
    if Options.MAX_ITER in options and options[Options.MAX_ITER] <= 0:
        raise ValueError('The maximum number of iterations must be positive.')
    options.setdefault(Options.MAX_ITER.value, DEFAULT_OPTIONS[Options.MAX_ITER](options[Options.MAX_EVAL]))
    options[Options.MAX_ITER.value] = int(options[Options.MAX_ITER])
    options.setdefault(Options.TARGET.value, DEFAULT_OPTIONS[Options.TARGET])
    options[Options.TARGET.value] = float(options[Options.TARGET])
    options.setdefault(Options.ETA1.value, DEFAULT_OPTIONS[Options.ETA1])
    options[Options.ETA1.value] = float(options[Options.ETA1])
    options.setdefault(Options.ETA2.value, DEFAULT_OPTIONS[Options.ETA2])
    options[Options.ETA2.value] = float(options[Options.ETA2])
    if not 0.0 <= options[Options.ETA1] <= options[Options.ETA2] < 1.0:
        raise ValueError('The thresholds on the reduction ratio must satisfy 0 <= eta1 <= eta2 < 1.')
    options.setdefault(Options.GAMMA1.value, DEFAULT_OPTIONS[Options.GAMMA1])
    options[Options.GAMMA1.value] = float(options[Options.GAMMA1])
    options.setdefault(Options.GAMMA2.value, DEFAULT_OPTIONS[Options.GAMMA2])
    options[Options.GAMMA2.value] = float(options[Options.GAMMA2])
    if not 0.0 < options[Options.GAMMA1] < 1.0 < options[Options.GAMMA2]:
        raise ValueError('The factors of the trust-region radius must satisfy 0 < gamma1 < 1 < gamma2.')
    options.setdefault(Options.VERBOSE.value, DEFAULT_OPTIONS[Options.VERBOSE])
    options[Options.VERBOSE.value] = bool(options[Options.VERBOSE])
    options.setdefault(Options.STORE_HISTORY.value, DEFAULT_OPTIONS[Options.STORE_HISTORY])
    options[Options.STORE_HISTORY.value] = bool(options[Options.STORE_HISTORY])
    options.setdefault(Options.HISTORY_SIZE.value, DEFAULT_OPTIONS[Options.HISTORY_SIZE])
    options[Options.HISTORY_SIZE.value] = min(int(options[Options.HISTORY_SIZE]), options[Options.MAX_EVAL])
    options.setdefault(Options.DEBUG.value, DEFAULT_OPTIONS[Options.DEBUG])
    options[Options.DEBUG.value] = bool(options[Options.DEBUG])

    # Check whether they are any unknown options.
    for key in options:
        if key not in Options.__members__.values():
            warnings.warn(f'Unknown option: {key}.', RuntimeWarning, 3)


def _eval(pb, framework, step, options):
    """
    Evaluate the objective function at ``x_best + step`` and check whether the
    optimization procedure must stop.
    """
    x_eval = framework.x_best + step
    try:
        fun_val = pb(x_eval)
    except CallbackSuccess as exc:
        return x_eval, exc.value, ExitStatus.CALLBACK_SUCCESS
    return x_eval, fun_val, check_exit(pb.n_eval, fun_val, x_eval, options)


def _build_result(pb, x, fun_val, status, n_iter, options):
    """
    Build the result of the optimization process.
    """
    result = OptimizeResult()
    result.message = {
        ExitStatus.RADIUS_SUCCESS: 'The lower bound for the trust-region radius has been reached',
        ExitStatus.TARGET_SUCCESS: 'The target objective function value has been reached',
        ExitStatus.FIXED_SUCCESS: 'All variables are fixed by the bound constraints',
        ExitStatus.CALLBACK_SUCCESS: 'The callback requested to stop the optimization procedure',
        ExitStatus.MAX_EVAL_WARNING: 'The maximum number of function evaluations has been exceeded',
        ExitStatus.MAX_ITER_WARNING: 'The maximum number of iterations has been exceeded',
        ExitStatus.INFEASIBLE_ERROR: 'The bound constraints are infeasible',
        ExitStatus.LINALG_ERROR: 'A linear algebra error occurred',
        ExitStatus.NAN_INF_X_ERROR: 'A point with NaN or infinite entries has been generated',
        ExitStatus.NAN_INF_F_ERROR: 'The objective function returned NaN or an infinite value',
    }.get(status, 'Unknown exit status')
    result.success = status in [
        ExitStatus.RADIUS_SUCCESS,
        ExitStatus.TARGET_SUCCESS,
        ExitStatus.FIXED_SUCCESS,
        ExitStatus.CALLBACK_SUCCESS,
    ]
    result.status = status.value
    result.x = pb.build_x(x)
    result.fun = fun_val
    result.maxcv = pb.maxcv(x)
    result.nfev = pb.n_eval
    result.nit = n_iter
    if options[Options.STORE_HISTORY]:
        result.fun_history = pb.fun_history
        result.x_history = pb.x_history

    # Print the result if requested.
    if options[Options.VERBOSE]:
        _print_step(result.message, pb, result.x, result.fun, result.nfev, result.nit)
    return result


def _print_step(message, pb, x, fun_val, n_eval, n_iter):
    """
    Print information about the current state of the optimization process.
    """
    print()
    print(f'{message}.')
    print(f'Number of function evaluations: {n_eval}.')
    print(f'Number of iterations: {n_iter}.')
    print(f'Least value of {pb.fun_name}: {fun_val}.')
    with np.printoptions(**PRINT_OPTIONS):
        print(f'Corresponding point: {x}.')
