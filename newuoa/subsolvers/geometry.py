import numpy as np

from ..utils import get_arrays_tol


def cauchy_geometry(const, grad, curv, xl, xu, delta, debug):
    r"""
    Maximize approximately the absolute value of a quadratic function subject to
    bound constraints in a trust region.

    This function solves approximately

    .. math::

        \begin{aligned}
            \max_{s \in \mathbb{R}^n}   & \quad \bigg\lvert c + g^{\mathsf{T}} s + \frac{1}{2} s^{\mathsf{T}} H s \bigg\rvert\\
            \text{s.t.}                 & \quad l \le s \le u,\\
                                        & \quad \lVert s \rVert \le \Delta,
        \end{aligned}

    by maximizing the objective function along the constrained Cauchy
    directions of the quadratic function and of its negative.

    Parameters
    ----------
    const : float
        Constant :math:`c` as shown above.
    grad : `numpy.ndarray`, shape (n,)
        Gradient :math:`g` as shown above.
    curv : callable
        Curvature of :math:`H` along any vector.

            ``curv(s) -> float``

        returns :math:`s^{\mathsf{T}} H s`.
    xl : `numpy.ndarray`, shape (n,)
        Lower bounds :math:`l` as shown above.
    xu : `numpy.ndarray`, shape (n,)
        Upper bounds :math:`u` as shown above.
    delta : float
        Trust-region radius :math:`\Delta` as shown above.
    debug : bool
        Whether to make debugging tests during the execution.

    Returns
    -------
    `numpy.ndarray`, shape (n,)
        Approximate solution :math:`s`.

    Notes
    -----
    It is assumed that the origin is feasible with respect to the bound
    constraints `xl` and `xu`, and that `delta` is finite and positive. The
    returned step never provides a smaller absolute value than the origin.
    """
    # Check the feasibility of the subproblem.
    tol = get_arrays_tol(xl, xu)
    if debug:
        assert np.max(xl) < tol
        assert np.min(xu) > -tol
        assert np.isfinite(delta) and delta > 0.0
    xl = np.minimum(xl, 0.0)
    xu = np.maximum(xu, 0.0)

    # The function is maximized along the constrained Cauchy direction, and
    # minimized along the opposite one.
    step = np.zeros_like(grad)
    q_val = const
    for direction in (_cauchy_direction(grad, xl, xu, delta), _cauchy_direction(-grad, xl, xu, delta)):
        alpha_max = _max_step_size(direction, xl, xu, delta)
        if alpha_max > 0.0:
            alpha, q_dir = _line_search(const, grad @ direction, curv(direction), 0.0, alpha_max)
            if abs(q_dir) > abs(q_val):
                step = np.clip(alpha * direction, xl, xu)
                q_val = q_dir

    if debug:
        assert np.all(xl <= step)
        assert np.all(step <= xu)
        assert np.linalg.norm(step) < 1.1 * delta
    return step


def spider_geometry(const, grad, curv, xpt, xl, xu, delta, debug):
    r"""
    Maximize approximately the absolute value of a quadratic function subject to
    bound constraints in a trust region along specific straight lines.

    This function solves approximately

    .. math::

        \begin{aligned}
            \max_{s \in \mathbb{R}^n}   & \quad \bigg\lvert c + g^{\mathsf{T}} s + \frac{1}{2} s^{\mathsf{T}} H s \bigg\rvert\\
            \text{s.t.}                 & \quad l \le s \le u,\\
                                        & \quad \lVert s \rVert \le \Delta,
        \end{aligned}

    by maximizing the objective function along the straight lines through the
    origin and the columns of `xpt`.

    Parameters
    ----------
    const : float
        Constant :math:`c` as shown above.
    grad : `numpy.ndarray`, shape (n,)
        Gradient :math:`g` as shown above.
    curv : callable
        Curvature of :math:`H` along any vector.

            ``curv(s) -> float``

        returns :math:`s^{\mathsf{T}} H s`.
    xpt : `numpy.ndarray`, shape (n, npt)
        Points defining the straight lines as shown above.
    xl : `numpy.ndarray`, shape (n,)
        Lower bounds :math:`l` as shown above.
    xu : `numpy.ndarray`, shape (n,)
        Upper bounds :math:`u` as shown above.
    delta : float
        Trust-region radius :math:`\Delta` as shown above.
    debug : bool
        Whether to make debugging tests during the execution.

    Returns
    -------
    `numpy.ndarray`, shape (n,)
        Approximate solution :math:`s`.

    Notes
    -----
    It is assumed that the origin is feasible with respect to the bound
    constraints `xl` and `xu`, and that `delta` is finite and positive. Along
    each line, the maximum is exact, so that the returned step is at least as
    good as any feasible column of `xpt` lying in the trust region.
    """
    # Check the feasibility of the subproblem.
    tol = get_arrays_tol(xl, xu)
    if debug:
        assert np.max(xl) < tol
        assert np.min(xu) > -tol
        assert np.isfinite(delta) and delta > 0.0
    xl = np.minimum(xl, 0.0)
    xu = np.maximum(xu, 0.0)

    # Iterate through the straight lines.
    step = np.zeros_like(grad)
    q_val = const
    for k in range(xpt.shape[1]):
        alpha_xu = _max_step_size(xpt[:, k], xl, xu, delta)
        alpha_xl = -_max_step_size(-xpt[:, k], xl, xu, delta)
        if alpha_xu > alpha_xl:
            alpha, q_dir = _line_search(const, grad @ xpt[:, k], curv(xpt[:, k]), alpha_xl, alpha_xu)
            if abs(q_dir) > abs(q_val):
                step = np.clip(alpha * xpt[:, k], xl, xu)
                q_val = q_dir

    if debug:
        assert np.all(xl <= step)
        assert np.all(step <= xu)
        assert np.linalg.norm(step) < 1.1 * delta
    return step


def _cauchy_direction(grad, xl, xu, delta):
    """
    Get the feasible step of norm at most `delta` that maximizes approximately
    the linear function ``grad @ step``.

    The components of `grad` are scaled to fill the trust region, and those
    that violate the bounds are fixed to the bounds, until the step is
    feasible.
    """
    step = np.zeros_like(grad)
    working = ((grad > 0.0) & (xu > 0.0)) | ((grad < 0.0) & (xl < 0.0))
    while np.any(working):
        delta_sq = delta ** 2.0 - step[~working] @ step[~working]
        g_norm = np.linalg.norm(grad[working])
        if delta_sq <= 0.0 or g_norm <= np.finfo(float).tiny * delta:
            break
        step[working] = (np.sqrt(delta_sq) / g_norm) * grad[working]

        # Fix the components that violate the bounds.
        fixed_xl = working & (step < xl)
        fixed_xu = working & (step > xu)
        if not np.any(fixed_xl | fixed_xu):
            break
        step[fixed_xl] = xl[fixed_xl]
        step[fixed_xu] = xu[fixed_xu]
        working &= ~(fixed_xl | fixed_xu)
    return step


def _max_step_size(direction, xl, xu, delta):
    """
    Get the largest nonnegative step size along `direction` that satisfies the
    bound and the trust-region constraints.
    """
    s_norm = np.linalg.norm(direction)
    if s_norm <= np.finfo(float).tiny * delta:
        return 0.0
    i_xl = direction < 0.0
    i_xu = direction > 0.0
    alpha_xl = np.min(xl[i_xl] / direction[i_xl], initial=np.inf)
    alpha_xu = np.min(xu[i_xu] / direction[i_xu], initial=np.inf)
    return max(min(delta / s_norm, alpha_xl, alpha_xu), 0.0)


def _line_search(const, grad_step, curv_step, alpha_xl, alpha_xu):
    """
    Maximize the absolute value of a univariate quadratic on an interval.

    The maximum is attained at an endpoint or at the critical point.
    """
    alphas = [alpha_xl, alpha_xu]
    if abs(curv_step) > np.finfo(float).tiny * abs(grad_step):
        alpha_crit = -grad_step / curv_step
        if alpha_xl < alpha_crit < alpha_xu:
            alphas.append(alpha_crit)
    q_vals = [const + alpha * grad_step + 0.5 * alpha ** 2.0 * curv_step for alpha in alphas]
    i_max = int(np.argmax(np.abs(q_vals)))
    return alphas[i_max], q_vals[i_max]
