import logging

import numpy as np

from .models import Models
from .settings import Options
from .subsolvers import cauchy_geometry, spider_geometry, truncated_conjugate_gradient
from .utils import Window, huge

_log = logging.getLogger(__name__)


class TrustRegion:
    """
    Trust-region framework.
    """

    def __init__(self, pb, options):
        """
        Initialize the trust-region framework.

        Parameters
        ----------
        pb : Problem
            Problem to solve.
        options : dict
            Options of the solver.
        """
        # Set the initial models and the initial trust-region radius.
        self._pb = pb
        self._debug = options[Options.DEBUG]
        self._models = Models(self._pb, options)
        self._radius = options[Options.RHOBEG]
        self._resolution = options[Options.RHOBEG]

        # Set the windows of the recent step norms and model errors.
        self._dnorm_window = Window(3, huge(float))
        self._moderr_window = Window(3, huge(float))

    @property
    def n(self):
        """
        Number of variables.

        Returns
        -------
        int
            Number of variables.
        """
        return self._pb.n

    @property
    def models(self):
        """
        Models of the objective function.

        Returns
        -------
        Models
            Models of the objective function.
        """
        return self._models

    @property
    def radius(self):
        """
        Trust-region radius.

        Returns
        -------
        float
            Trust-region radius.
        """
        return self._radius

    @radius.setter
    def radius(self, radius):
        """
        Set the trust-region radius.

        Parameters
        ----------
        radius : float
            New trust-region radius.
        """
        if self._debug:
            assert np.isfinite(radius) and radius > 0.0
        self._radius = radius

    @property
    def resolution(self):
        """
        Resolution of the trust-region framework.

        The resolution is a lower bound on the trust-region radius.

        Returns
        -------
        float
            Resolution of the trust-region framework.
        """
        return self._resolution

    @resolution.setter
    def resolution(self, resolution):
        """
        Set the resolution of the trust-region framework.

        Parameters
        ----------
        resolution : float
            New resolution of the trust-region framework.
        """
        if self._debug:
            assert np.isfinite(resolution) and resolution > 0.0
        self._resolution = resolution

    @property
    def dnorm_window(self):
        """
        Norms of the recent steps.

        Returns
        -------
        Window
            Norms of the recent steps.
        """
        return self._dnorm_window

    @property
    def moderr_window(self):
        """
        Errors of the model at the recent points.

        Returns
        -------
        Window
            Errors of the model at the recent points.
        """
        return self._moderr_window

    @property
    def x_best(self):
        """
        Best point so far.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Best point so far.
        """
        return self.models.x_opt

    @property
    def fun_best(self):
        """
        Value of the objective function at `x_best`.

        Returns
        -------
        float
            Value of the objective function at `x_best`.
        """
        return self.models.fun_opt

    def get_trust_region_step(self, options):
        """
        Get the trust-region step.

        The trust-region step is computed by solving the trust-region
        subproblem with the truncated conjugate gradient method, the variables
        being kept within the bounds.

        Parameters
        ----------
        options : dict
            Options of the solver.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Trust-region step.
        float
            Least curvature of the model met by the subproblem solver.
        """
        grad = self.models.fun_grad(self.x_best)
        xl = self._pb.bounds.xl - self.x_best
        xu = self._pb.bounds.xu - self.x_best
        step, crvmin = truncated_conjugate_gradient(grad, self.models.fun_hess_prod, xl, xu, self.radius, options[Options.DEBUG])
        if options[Options.DEBUG]:
            tol = 10.0 * np.finfo(float).eps * self.n * max(1.0, np.max(np.abs(self.x_best), initial=1.0))
            assert np.all(xl - tol <= step)
            assert np.all(step <= xu + tol)
            assert np.linalg.norm(step) < 1.1 * self.radius
        return step, crvmin

    def get_geometry_step(self, k_new, delbar, options):
        """
        Get the geometry-improving step.

        The step maximizes approximately the absolute value of the `k_new`-th
        Lagrange function in a trust region of radius `delbar`, so that the
        denominator of the updating formula is large.

        Parameters
        ----------
        k_new : int
            Index of the interpolation point to be removed.
        delbar : float
            Radius of the trust region for the geometry step.
        options : dict
            Options of the solver.

        Returns
        -------
        `numpy.ndarray`, shape (n,)
            Geometry-improving step.
        """
        _log.debug(f"Computing a geometry step to replace point {k_new}")
        interpolation = self.models.interpolation
        kkt = self.models.kkt
        k_opt = self.models.k_opt
        xpt = interpolation.xpt
        x_opt = xpt[:, k_opt]

        # Build the k_new-th Lagrange function around the best point.
        omega = kkt.omega(k_new)
        lag_grad = kkt.bmat[:, k_new] + xpt @ (omega * (xpt.T @ x_opt))

        def lag_curv(v):
            return omega @ np.square(xpt.T @ v)

        xl = self._pb.bounds.xl - self.x_best
        xu = self._pb.bounds.xu - self.x_best
        step_cauchy = cauchy_geometry(0.0, lag_grad, lag_curv, xl, xu, delbar, options[Options.DEBUG])
        step_spider = spider_geometry(0.0, lag_grad, lag_curv, xpt - x_opt[:, np.newaxis], xl, xu, delbar, options[Options.DEBUG])

        # Choose the step that provides the largest denominator.
        alpha = kkt.alpha(k_new)
        vlag, beta = kkt.lagrange(xpt, k_opt, step_cauchy)
        sigma_cauchy = abs(alpha * beta + vlag[k_new] ** 2.0)
        vlag, beta = kkt.lagrange(xpt, k_opt, step_spider)
        sigma_spider = abs(alpha * beta + vlag[k_new] ** 2.0)
        if sigma_spider > sigma_cauchy or np.isnan(sigma_cauchy):
            step = step_spider
        else:
            step = step_cauchy

        if options[Options.DEBUG]:
            assert np.linalg.norm(step) < 1.1 * delbar
        return step

    def get_reduction_ratio(self, fun_val, model_decrease):
        """
        Get the reduction ratio.

        Parameters
        ----------
        fun_val : float
            Objective function value at the trial point.
        model_decrease : float
            Decrease of the model along the trial step.

        Returns
        -------
        float
            Reduction ratio. A large negative value is returned when the model
            does not decrease along the step or when the ratio is undefined.
        """
        if np.isnan(model_decrease) or model_decrease <= 0.0:
            return -huge(float)
        ratio = (self.fun_best - fun_val) / model_decrease
        if np.isnan(ratio):
            return -huge(float)
        return ratio

    def update_radius(self, s_norm, ratio, options):
        """
        Update the trust-region radius.

        Parameters
        ----------
        s_norm : float
            Norm of the trust-region step, at most the trust-region radius.
        ratio : float
            Reduction ratio.
        options : dict
            Options of the solver.
        """
        if ratio <= options[Options.ETA1]:
            radius = options[Options.GAMMA1] * s_norm
        elif ratio <= options[Options.ETA2]:
            radius = max(options[Options.GAMMA1] * self.radius, s_norm)
        else:
            radius = max(options[Options.GAMMA1] * self.radius, options[Options.GAMMA2] * s_norm)

        # The trust-region radius cannot be too close to the resolution.
        if radius <= 1.5 * self.resolution:
            radius = self.resolution
        _log.debug(f"Trust-region radius updated from {self.radius} to {radius} ({ratio=})")
        self.radius = radius

    def shrink_radius(self):
        """
        Shrink the trust-region radius after a short step.
        """
        radius = 0.1 * self.radius
        if radius <= 1.5 * self.resolution:
            radius = self.resolution
        self.radius = radius

    def get_index_to_remove(self, step, improved):
        """
        Get the index of the interpolation point to replace by
        ``x_best + step``.

        The choice balances the denominators of the updating formula and the
        distances of the interpolation points to the best point.

        Parameters
        ----------
        step : `numpy.ndarray`, shape (n,)
            Trust-region step.
        improved : bool
            Whether ``x_best + step`` improves on the best point so far.

        Returns
        -------
        {int, None}
            Index of the interpolation point to replace, or None if no
            interpolation point should be replaced.
        """
        interpolation = self.models.interpolation
        kkt = self.models.kkt
        k_opt = self.models.k_opt
        vlag, beta = kkt.lagrange(interpolation.xpt, k_opt, step)
        sigma = np.abs(beta * kkt.alpha() + np.square(vlag[:interpolation.npt]))

        # Favor the removal of the points far from the best one.
        x_ref = interpolation.xpt[:, k_opt] + step if improved else interpolation.xpt[:, k_opt]
        dist_sq = np.sum(np.square(interpolation.xpt - x_ref[:, np.newaxis]), axis=0)
        weight = np.maximum(1.0, dist_sq / max(0.1 * self.radius, self.resolution) ** 2.0) ** 3.0
        score = weight * sigma

        # The best point is kept if it remains the best one. A point that does
        # not improve on it replaces another one only if the weighted
        # denominator exceeds one.
        if not improved:
            score[k_opt] = -1.0
        score[np.isnan(score)] = -1.0
        if np.any(score > 1.0) or (improved and np.any(score > 0.0)):
            return int(np.argmax(score))
        elif improved:
            return int(np.argmax(dist_sq))
        return None

    def get_dist_sq(self):
        """
        Get the squared distances from the interpolation points to the best
        one.

        Returns
        -------
        `numpy.ndarray`, shape (npt,)
            Squared distances from the interpolation points to ``x_best``.
        """
        xpt = self.models.interpolation.xpt
        return np.sum(np.square(xpt - xpt[:, self.models.k_opt, np.newaxis]), axis=0)

    def reduce_resolution(self, options):
        """
        Reduce the resolution of the trust-region framework.

        Parameters
        ----------
        options : dict
            Options of the solver.
        """
        ratio = self.resolution / options[Options.RHOEND]
        if ratio <= 16.0:
            resolution = options[Options.RHOEND]
        elif ratio <= 250.0:
            resolution = np.sqrt(ratio) * options[Options.RHOEND]
        else:
            resolution = 0.1 * self.resolution
        self.radius = max(0.5 * self.resolution, resolution)
        self.resolution = resolution
        self.dnorm_window.reset()
        self.moderr_window.reset()
        _log.debug(f"Resolution reduced to {self.resolution} (radius {self.radius})")

    def shift_x_base(self, options):
        """
        Shift the base point to `x_best`.

        Parameters
        ----------
        options : dict
            Options of the solver.
        """
        _log.debug(f"Shifting the base point to {self.x_best}")
        self.models.shift_x_base(options)
