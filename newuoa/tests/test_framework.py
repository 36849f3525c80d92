import numpy as np
import pytest
from scipy.optimize import Bounds, rosen

from ..framework import TrustRegion
from ..problem import ObjectiveFunction, BoundConstraints, Problem
from ..settings import Options
from ..utils import huge


def get_framework(x0, xl=None, xu=None, **kwargs):
    n = len(x0)
    xl = np.full(n, -np.inf) if xl is None else xl
    xu = np.full(n, np.inf) if xu is None else xu
    obj = ObjectiveFunction(rosen, False, True)
    pb = Problem(obj, x0, BoundConstraints(Bounds(xl, xu)), None, False, 0, True)
    options = {
        Options.RHOBEG.value: 1.0,
        Options.RHOEND.value: 1e-6,
        Options.NPT.value: 2 * n + 1,
        Options.MAX_EVAL.value: 500 * n,
        Options.TARGET.value: -np.inf,
        Options.ETA1.value: 0.1,
        Options.ETA2.value: 0.7,
        Options.GAMMA1.value: 0.5,
        Options.GAMMA2.value: 2.0,
        Options.DEBUG.value: True,
    }
    options.update(kwargs)
    return TrustRegion(pb, options), options


class TestTrustRegion:

    def test_simple(self):
        framework, options = get_framework([0.0, 0.0])
        assert framework.n == 2
        assert framework.radius == options[Options.RHOBEG]
        assert framework.resolution == options[Options.RHOBEG]
        assert framework.fun_best == np.min(framework.models.fun_val)
        np.testing.assert_array_equal(framework.x_best, framework.models.x_opt)
        assert framework.dnorm_window.all(lambda v: v == huge(float))
        assert framework.moderr_window.all(lambda v: v == huge(float))

    def test_reduction_ratio(self):
        framework, _ = get_framework([0.0, 0.0])
        fun_best = framework.fun_best
        assert framework.get_reduction_ratio(fun_best - 1.0, 2.0) == 0.5
        assert framework.get_reduction_ratio(fun_best + 1.0, 2.0) == -0.5
        assert framework.get_reduction_ratio(fun_best - 1.0, 0.0) == -huge(float)
        assert framework.get_reduction_ratio(fun_best - 1.0, -1.0) == -huge(float)
        assert framework.get_reduction_ratio(fun_best - 1.0, np.nan) == -huge(float)
        assert framework.get_reduction_ratio(np.nan, 1.0) == -huge(float)

    @pytest.mark.parametrize("ratio,s_norm,radius", [
        (0.05, 0.8, 0.4),
        (-1.0, 0.8, 0.4),
        (0.5, 0.8, 0.8),
        (0.5, 0.2, 0.5),
        (0.9, 0.8, 1.6),
        (0.9, 0.2, 0.5),
    ])
    def test_update_radius(self, ratio, s_norm, radius):
        framework, options = get_framework([0.0, 0.0])
        framework.resolution = 0.01
        framework.update_radius(s_norm, ratio, options)
        assert framework.radius == pytest.approx(radius)

    def test_update_radius_resolution(self):
        framework, options = get_framework([0.0, 0.0])
        framework.resolution = 0.01
        framework.radius = 0.03
        framework.update_radius(0.02, -1.0, options)
        assert framework.radius == 0.01

    def test_shrink_radius(self):
        framework, _ = get_framework([0.0, 0.0])
        framework.resolution = 0.01
        framework.shrink_radius()
        assert framework.radius == pytest.approx(0.1)
        framework.shrink_radius()
        assert framework.radius == 0.01

    @pytest.mark.parametrize("resolution,new_resolution,radius", [
        (1.0, 0.1, 0.5),
        (1e-4, 1e-5, 5e-5),
        (1e-5, 1e-6, 5e-6),
    ])
    def test_reduce_resolution(self, resolution, new_resolution, radius):
        framework, options = get_framework([0.0, 0.0])
        framework.resolution = resolution
        framework.radius = resolution
        framework.dnorm_window.push(0.1)
        framework.moderr_window.push(0.1)
        framework.reduce_resolution(options)
        assert framework.resolution == pytest.approx(new_resolution)
        assert framework.radius == pytest.approx(radius)
        assert framework.dnorm_window.all(lambda v: v == huge(float))
        assert framework.moderr_window.all(lambda v: v == huge(float))

    @pytest.mark.parametrize("n", [2, 5])
    def test_trust_region_step(self, n):
        framework, options = get_framework(np.zeros(n))
        step, crvmin = framework.get_trust_region_step(options)
        assert step.shape == (n,)
        assert np.linalg.norm(step) <= 1.1 * framework.radius
        assert crvmin >= 0.0
        assert framework.models.fun_decrease(step) >= 0.0

    def test_trust_region_step_bounds(self):
        xl = np.array([-0.5, -0.5])
        xu = np.array([0.5, 0.5])
        framework, options = get_framework([0.0, 0.0], xl, xu, rhobeg=0.25)
        step, _ = framework.get_trust_region_step(options)
        x_trial = framework.x_best + step
        assert np.all(xl - 1e-12 <= x_trial) and np.all(x_trial <= xu + 1e-12)

    @pytest.mark.parametrize("n", [2, 5])
    def test_geometry_step(self, n):
        framework, options = get_framework(np.zeros(n))
        dist_sq = framework.get_dist_sq()
        assert dist_sq[framework.models.k_opt] == 0.0
        k_new = int(np.argmax(dist_sq))
        delbar = 0.5 * framework.radius
        step = framework.get_geometry_step(k_new, delbar, options)
        assert np.linalg.norm(step) <= 1.1 * delbar

        # The new point keeps the interpolation problem well-posed.
        kkt = framework.models.kkt
        vlag, beta = kkt.lagrange(framework.models.interpolation.xpt, framework.models.k_opt, step)
        assert abs(kkt.alpha(k_new) * beta + vlag[k_new] ** 2.0) > 0.0

    def test_index_to_remove(self):
        rng = np.random.default_rng(0)
        framework, _ = get_framework(np.zeros(3))
        k_opt = framework.models.k_opt
        for _ in range(10):
            step = 0.5 * rng.standard_normal(3)
            k_new = framework.get_index_to_remove(step, True)
            assert 0 <= k_new < framework.models.npt
            k_new = framework.get_index_to_remove(step, False)
            assert k_new is None or (0 <= k_new < framework.models.npt and k_new != k_opt)

    def test_index_to_remove_discarded(self):
        framework, _ = get_framework(np.zeros(3))
        k_opt = framework.models.k_opt

        # All weighted denominators are far below one for a tiny step.
        step = 1e-8 * np.ones(3)
        assert framework.get_index_to_remove(step, False) is None
        k_new = framework.get_index_to_remove(step, True)
        assert k_new is not None and 0 <= k_new < framework.models.npt

        # The step from the best point to itself never replaces a point.
        assert framework.get_index_to_remove(np.zeros(3), False) is None
        assert framework.models.k_opt == k_opt

    def test_shift_x_base(self):
        framework, options = get_framework([0.0, 0.0])
        x_best = np.copy(framework.x_best)
        framework.shift_x_base(options)
        np.testing.assert_array_equal(framework.models.interpolation.x_base, x_best)
        np.testing.assert_allclose(framework.x_best, x_best, atol=1e-12)
