import numpy as np

from ..utils import get_arrays_tol


def truncated_conjugate_gradient(grad, hess_prod, xl, xu, delta, debug, improve=True):
    r"""
    Minimize approximately a quadratic function subject to bound constraints in
    a trust region.

    This function solves approximately

    .. math::

        \begin{aligned}
            \min_{s \in \mathbb{R}^n}   & \quad g^{\mathsf{T}} s + \frac{1}{2} s^{\mathsf{T}} H s\\
            \text{s.t.}                 & \quad l \le s \le u,\\
                                        & \quad \lVert s \rVert \le \Delta,
        \end{aligned}

    using an active-set variation of the truncated conjugate gradient method.

    Parameters
    ----------
    grad : `numpy.ndarray`, shape (n,)
        Gradient :math:`g` as shown above.
    hess_prod : callable
        Product of the Hessian matrix :math:`H` with any vector.

            ``hess_prod(s) -> numpy.ndarray, shape (n,)``

        returns the product :math:`H s`.
    xl : `numpy.ndarray`, shape (n,)
        Lower bounds :math:`l` as shown above.
    xu : `numpy.ndarray`, shape (n,)
        Upper bounds :math:`u` as shown above.
    delta : float
        Trust-region radius :math:`\Delta` as shown above.
    debug : bool
        Whether to make debugging tests during the execution.
    improve : bool, optional
        If True, a solution generated by the truncated conjugate gradient
        method that is on the boundary of the trust region is improved by
        moving around the trust-region boundary on the two-dimensional spaces
        spanned by the solution and the gradient of the quadratic function at
        the solution.

    Returns
    -------
    `numpy.ndarray`, shape (n,)
        Approximate solution :math:`s`.
    float
        Least curvature :math:`d^{\mathsf{T}} H d / \lVert d \rVert^2`
        encountered along the search directions of the interior iterations.
        It is zero if the boundary of the trust region is reached, in
        particular if a direction of nonpositive curvature is met.

    Notes
    -----
    This function implements Algorithm 6.2 of [1]_. It is assumed that the
    origin is feasible with respect to the bound constraints `xl` and `xu`,
    and that `delta` is finite and positive.

    References
    ----------
    .. [1] T. M. Ragonneau. *Model-Based Derivative-Free Optimization Methods
       and Software*. PhD thesis, The Hong Kong Polytechnic University, Hong
       Kong, China, 2022.
    .. [2] M. J. D. Powell. The NEWUOA software for unconstrained optimization
       without derivatives. In G. Di Pillo and M. Roma, editors, *Large-Scale
       Nonlinear Optimization*, volume 83 of *Nonconvex Optimization and Its
       Applications*, pages 255--297. Springer, Boston, MA, USA, 2006.
    """
    # Check the feasibility of the subproblem.
    n = grad.size
    tol = get_arrays_tol(xl, xu)
    if debug:
        assert np.max(xl) < tol
        assert np.min(xu) > -tol
        assert np.isfinite(delta) and delta > 0.0
    xl = np.minimum(xl, 0.0)
    xu = np.maximum(xu, 0.0)

    # Set the initial active set. A variable is fixed at its bound if the
    # steepest descent direction points outside the bound constraints.
    free_bd = ((xl < 0.0) | (grad < 0.0)) & ((xu > 0.0) | (grad > 0.0))

    # Set the initial iterate and the initial search direction.
    step = np.zeros_like(grad)
    grad_step = np.copy(grad)
    sd = np.where(free_bd, -grad_step, 0.0)
    gg_beg = sd @ sd
    gg_prev = gg_beg
    crvmin = np.inf
    reduct = 0.0
    boundary_reached = False
    n_iter = 0
    max_iter = np.count_nonzero(free_bd)
    while n_iter < max_iter:
        n_iter += 1
        sd_sq = sd @ sd
        if sd_sq <= np.finfo(float).tiny * delta ** 2.0:
            break

        # Set alpha_tr to the step size for the trust-region constraint.
        step_sq = step @ step
        step_sd = step @ sd
        resid = delta ** 2.0 - step_sq
        if resid <= 0.0:
            boundary_reached = True
            break
        alpha_tr = resid / (np.sqrt(step_sd ** 2.0 + sd_sq * resid) + step_sd)

        # Set alpha_quad to the step size for the minimization problem.
        hess_sd = hess_prod(sd)
        curv_sd = sd @ hess_sd
        grad_sd = grad_step @ sd
        if curv_sd > np.finfo(float).tiny * abs(grad_sd):
            alpha_quad = max(-grad_sd / curv_sd, 0.0)
        else:
            alpha_quad = np.inf

        # Set alpha_bd to the step size for the bound constraints.
        i_xl = free_bd & (sd < 0.0)
        i_xu = free_bd & (sd > 0.0)
        all_alpha_xl = np.full_like(step, np.inf)
        all_alpha_xu = np.full_like(step, np.inf)
        all_alpha_xl[i_xl] = np.maximum((xl[i_xl] - step[i_xl]) / sd[i_xl], 0.0)
        all_alpha_xu[i_xu] = np.maximum((xu[i_xu] - step[i_xu]) / sd[i_xu], 0.0)
        alpha_xl = np.min(all_alpha_xl)
        alpha_xu = np.min(all_alpha_xu)
        alpha_bd = min(alpha_xl, alpha_xu)

        # Update the iterate and the gradient of the quadratic function at it.
        alpha = min(alpha_tr, alpha_quad, alpha_bd)
        q_red = -alpha * (grad_sd + 0.5 * alpha * curv_sd)
        step += alpha * sd
        grad_step += alpha * hess_sd
        reduct += q_red
        if alpha_quad < min(alpha_tr, alpha_bd):
            crvmin = min(crvmin, curv_sd / sd_sq)

        if alpha_tr <= min(alpha_quad, alpha_bd):
            # The iterate is on the trust-region boundary.
            boundary_reached = True
            break
        elif alpha_bd < alpha_quad:
            # A bound is reached. The corresponding variable is fixed and the
            # conjugate gradient method is restarted.
            if alpha_xl <= alpha_xu:
                i_new = np.argmin(all_alpha_xl)
                step[i_new] = xl[i_new]
            else:
                i_new = np.argmin(all_alpha_xu)
                step[i_new] = xu[i_new]
            free_bd[i_new] = False
            sd = np.where(free_bd, -grad_step, 0.0)
            gg_prev = sd @ sd
            n_iter = 0
            max_iter = np.count_nonzero(free_bd)
        else:
            # The conjugate gradient iterations continue unless the last one
            # has been ineffective.
            gg_new = np.where(free_bd, grad_step, 0.0) @ grad_step
            if q_red <= 0.01 * reduct or gg_new <= 1e-4 * gg_beg:
                break
            beta = gg_new / gg_prev
            sd = np.where(free_bd, -grad_step + beta * sd, 0.0)
            gg_prev = gg_new

    if boundary_reached:
        crvmin = 0.0
        if improve:
            step, grad_step = _improve_on_boundary(step, grad_step, hess_prod, free_bd, xl, xu, reduct, n)
    elif not np.isfinite(crvmin):
        crvmin = 0.0

    # Ensure that the trust-region constraint is satisfied despite the
    # computer rounding errors. The bounds remain satisfied as 0 is feasible.
    s_norm = np.linalg.norm(step)
    if s_norm > delta:
        step *= delta / s_norm

    if debug:
        assert np.all(xl <= step)
        assert np.all(step <= xu)
        assert np.linalg.norm(step) < 1.1 * delta
        assert crvmin >= 0.0
    return step, crvmin


def _improve_on_boundary(step, grad_step, hess_prod, free_bd, xl, xu, reduct, max_iter):
    """
    Improve a solution on the trust-region boundary by rotating its free
    components in the plane spanned by them and the free components of the
    gradient at the solution.

    The norm of the step is kept unchanged, and only rotations that decrease
    the quadratic function while satisfying the bounds are accepted.
    """
    angles = 2.0 * np.pi * np.arange(1, 50) / 50.0
    for _ in range(max_iter):
        step_free = np.where(free_bd, step, 0.0)
        grad_free = np.where(free_bd, grad_step, 0.0)
        ss = step_free @ step_free
        gs = grad_free @ step_free
        temp = (grad_free @ grad_free) * ss - gs ** 2.0
        if temp <= 1e-4 * reduct ** 2.0:
            break
        temp = np.sqrt(temp)
        sd = (gs * step_free - ss * grad_free) / temp

        # Evaluate the change of the quadratic function along the arc
        # step(theta) = step + (cos(theta) - 1) * step_free + sin(theta) * sd.
        hess_step = hess_prod(step_free)
        hess_sd = hess_prod(sd)
        shs = step_free @ hess_step
        shd = step_free @ hess_sd
        dhd = sd @ hess_sd
        gd = grad_step @ sd

        def q_diff(theta):
            cos_m1 = np.cos(theta) - 1.0
            sin = np.sin(theta)
            return cos_m1 * gs + sin * gd + 0.5 * (cos_m1 ** 2.0 * shs + 2.0 * cos_m1 * sin * shd + sin ** 2.0 * dhd)

        def is_feasible(theta):
            trial = step + (np.cos(theta) - 1.0) * step_free + np.sin(theta) * sd
            return np.all(xl <= trial) and np.all(trial <= xu)

        q_vals = np.array([q_diff(theta) if is_feasible(theta) else np.inf for theta in angles])
        i_min = np.argmin(q_vals)
        if not q_vals[i_min] < 0.0:
            break
        theta = angles[i_min]

        # Refine the angle by quadratic interpolation when the neighbors of
        # the best sample are feasible.
        q_prev = 0.0 if i_min == 0 else q_vals[i_min - 1]
        q_next = q_diff(2.0 * np.pi) if i_min == angles.size - 1 else q_vals[i_min + 1]
        curv = q_prev - 2.0 * q_vals[i_min] + q_next
        if np.isfinite(curv) and curv > 0.0:
            theta_refined = theta + 0.5 * (q_prev - q_next) / curv * (angles[0])
            if is_feasible(theta_refined) and q_diff(theta_refined) < q_vals[i_min]:
                theta = theta_refined
        decrease = -q_diff(theta)

        # Update the step and the gradient of the quadratic function at it.
        cos_m1 = np.cos(theta) - 1.0
        sin = np.sin(theta)
        step = step + cos_m1 * step_free + sin * sd
        grad_step = grad_step + cos_m1 * hess_step + sin * hess_sd
        reduct += decrease
        if decrease <= 0.01 * reduct:
            break
    return step, grad_step
