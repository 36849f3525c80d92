import numpy as np
import pytest
from scipy.optimize import Bounds, rosen

from .. import main
from ..framework import TrustRegion
from ..main import minimize


class TestMinimize:

    def setup_method(self):
        self.x0 = [0.0, 0.0]
        self.options = {"debug": True}

    @staticmethod
    def fun(x, c=1.0):
        return (x[0] - 5.0) ** 2.0 + c * (x[1] - 4.0) ** 2.0

    def test_simple(self):
        res = minimize(self.fun, self.x0, options=self.options)
        np.testing.assert_allclose(res.x, [5.0, 4.0], atol=1e-4)
        assert res.success, res.message
        assert res.status == 0, res
        assert res.maxcv == 0.0, res
        assert res.nfev <= 100, res
        assert res.fun < 1e-8, res
        assert res.fun == self.fun(res.x), res

        # Check the extra arguments.
        res = minimize(self.fun, self.x0, 2.0, options=self.options)
        np.testing.assert_allclose(res.x, [5.0, 4.0], atol=1e-4)
        res = minimize(self.fun, self.x0, (2.0,), options=self.options)
        np.testing.assert_allclose(res.x, [5.0, 4.0], atol=1e-4)

    @pytest.mark.parametrize("n", [2, 3])
    def test_rosen(self, n):
        options = dict(self.options)
        options["rhoend"] = 1e-8
        res = minimize(rosen, np.zeros(n), options=options)
        np.testing.assert_allclose(res.x, np.ones(n), atol=1e-3)
        assert res.success, res.message
        assert res.nfev <= 500 * n, res
        assert res.nit > 0, res

    @pytest.mark.parametrize("npt_f", [
        lambda n: n + 2,
        lambda n: (n + 1) * (n + 2) // 2,
    ])
    def test_npt(self, npt_f):
        n = 3
        options = dict(self.options)
        options["npt"] = npt_f(n)
        res = minimize(lambda x: np.sum((x - np.arange(n)) ** 2.0), np.zeros(n), options=options)
        np.testing.assert_allclose(res.x, np.arange(n), atol=1e-4)
        assert res.success, res.message

    def test_bounds(self):
        # Case where the bounds are active at the solution.
        res = minimize(self.fun, self.x0, bounds=[[0.0, 3.0], [0.0, 10.0]], options=self.options)
        np.testing.assert_allclose(res.x, [3.0, 4.0], atol=1e-4)
        assert res.success, res.message
        assert res.maxcv == 0.0, res
        bounds = Bounds([0.0, 0.0], [3.0, 10.0])
        res_alt = minimize(self.fun, self.x0, bounds=bounds, options=self.options)
        np.testing.assert_array_equal(res.x, res_alt.x)
        assert res.nfev == res_alt.nfev, res

        # Case where the bounds are not active at the solution.
        res = minimize(self.fun, self.x0, bounds=Bounds(-10.0, 10.0), options=self.options)
        np.testing.assert_allclose(res.x, [5.0, 4.0], atol=1e-4)

        # The objective function is only evaluated within the bounds.
        options = dict(self.options)
        options["store_history"] = True
        res = minimize(rosen, [0.5, 0.5], bounds=Bounds([0.0, 0.0], [0.8, 0.8]), options=options)
        assert np.all(res.x_history >= 0.0) and np.all(res.x_history <= 0.8), res
        np.testing.assert_allclose(res.x, [0.8, 0.64], atol=1e-3)

    def test_wrong_bounds(self):
        with pytest.raises(ValueError):
            minimize(self.fun, self.x0, bounds=[[0.0, 1.0]])
        with pytest.raises(ValueError):
            minimize(self.fun, self.x0, bounds=Bounds([0.0, 0.0, 0.0], [1.0, 1.0, 1.0]))
        with pytest.raises(TypeError):
            minimize(self.fun, self.x0, bounds=1.0)

    def test_infeasible(self):
        res = minimize(self.fun, self.x0, bounds=Bounds([1.0, 0.0], [0.0, 1.0]), options=self.options)
        assert not res.success, res.message
        assert res.status == -1, res
        assert res.nfev == 0, res
        assert np.isnan(res.fun), res

    def test_fixed(self):
        # Case where all variables are fixed.
        res = minimize(self.fun, self.x0, bounds=Bounds([1.0, 2.0], [1.0, 2.0]), options=self.options)
        assert res.success, res.message
        assert res.status == 2, res
        assert res.nfev == 1, res
        np.testing.assert_array_equal(res.x, [1.0, 2.0])
        assert res.fun == self.fun([1.0, 2.0]), res

        # Case where some variables are fixed.
        res = minimize(self.fun, self.x0, bounds=Bounds([2.0, -np.inf], [2.0, np.inf]), options=self.options)
        assert res.success, res.message
        assert res.x[0] == 2.0, res
        np.testing.assert_allclose(res.x[1], 4.0, atol=1e-4)

    def test_callback(self):
        def callback(intermediate_result):
            if intermediate_result.fun < 1.0:
                raise StopIteration

        res = minimize(self.fun, self.x0, callback=callback, options=self.options)
        assert res.success, res.message
        assert res.status == 3, res
        assert res.fun < 1.0, res

        # The callback may stop the procedure during the initialization.
        n_calls = []

        def callback(x):
            n_calls.append(x)
            if len(n_calls) >= 2:
                raise StopIteration

        res = minimize(self.fun, self.x0, callback=callback, options=self.options)
        assert res.status == 3, res
        assert res.nfev == 2, res

    def test_target(self):
        options = dict(self.options)
        options["target"] = 1.0
        res = minimize(self.fun, self.x0, options=options)
        assert res.success, res.message
        assert res.status == 1, res
        assert res.fun <= 1.0, res

    def test_max_eval(self):
        options = dict(self.options)
        options["maxfev"] = 10
        res = minimize(rosen, np.zeros(3), options=options)
        assert not res.success, res.message
        assert res.status == 4, res
        assert res.nfev == 10, res

    def test_max_iter(self):
        options = dict(self.options)
        options["maxiter"] = 1
        res = minimize(rosen, np.zeros(3), options=options)
        assert not res.success, res.message
        assert res.status == 5, res
        assert res.nit == 1, res

    def test_history(self):
        points = []

        def fun(x):
            points.append(np.copy(x))
            return rosen(x)

        options = dict(self.options)
        options["store_history"] = True
        options["maxhist"] = 5
        res = minimize(fun, np.zeros(3), options=options)
        assert res.fun_history.shape == (5,), res
        assert res.x_history.shape == (5, 3), res
        np.testing.assert_array_equal(res.x_history, points[-5:])
        np.testing.assert_array_equal(res.fun_history, [rosen(x) for x in points[-5:]])

        # The whole history is stored by default.
        options = dict(self.options)
        options["store_history"] = True
        res = minimize(self.fun, self.x0, options=options)
        assert res.fun_history.size == res.nfev, res
        assert np.min(res.fun_history) == res.fun, res

        # No history is stored unless requested.
        res = minimize(self.fun, self.x0, options=self.options)
        assert "fun_history" not in res, res

    def test_nan(self):
        def fun(x):
            if x[0] > 3.0:
                return np.nan
            return self.fun(x)

        res = minimize(fun, self.x0, options=self.options)
        assert not res.success, res.message
        assert res.status == -4, res
        assert np.isfinite(res.fun), res
        assert res.x[0] <= 3.0, res

    def test_nan_initial(self):
        res = minimize(lambda x: np.nan, [1.0, 2.0], options=self.options)
        assert not res.success, res.message
        assert res.status == -4, res
        assert res.nfev == 1, res
        np.testing.assert_array_equal(res.x, [1.0, 2.0])
        assert np.isnan(res.fun), res

    def test_min_budget(self):
        values = []

        def fun(x):
            values.append(self.fun(x))
            return values[-1]

        options = dict(self.options)
        options["npt"] = 5
        options["maxfev"] = 6
        res = minimize(fun, self.x0, options=options)
        assert res.status == 4, res
        assert res.nfev == 6, res
        assert len(values) == 6, res
        assert res.fun <= min(values[:5]), res
        assert res.fun == min(values), res

    def test_monotonicity(self, monkeypatch):
        records = {"state": [], "reduce": [], "geometry": []}

        class RecordingTrustRegion(TrustRegion):

            def get_trust_region_step(self, options):
                records["state"].append((self.fun_best, self.resolution))
                return super().get_trust_region_step(options)

            def get_geometry_step(self, k_new, delbar, options):
                records["geometry"].append(len(records["state"]))
                return super().get_geometry_step(k_new, delbar, options)

            def reduce_resolution(self, options):
                records["reduce"].append(len(records["state"]))
                super().reduce_resolution(options)

        monkeypatch.setattr(main, "TrustRegion", RecordingTrustRegion)
        res = minimize(rosen, np.zeros(3), options=self.options)
        assert res.success, res.message
        fun_best = np.array([state[0] for state in records["state"]])
        resolution = np.array([state[1] for state in records["state"]])
        assert np.all(np.diff(fun_best) <= 0.0)
        assert np.all(np.diff(resolution) <= 0.0)
        assert res.fun <= fun_best[-1], res

        # The resolution is never reduced in an iteration that improves the
        # geometry of the interpolation set.
        assert len(records["reduce"]) > 0
        assert not set(records["reduce"]) & set(records["geometry"])

    def test_disp(self, capsys):
        options = dict(self.options)
        options["disp"] = True
        minimize(self.fun, self.x0, options=options)
        captured = capsys.readouterr()
        assert "Starting the optimization procedure." in captured.out
        assert "fun(" in captured.out

    def test_options(self):
        for options in [
            {"rhobeg": -1.0},
            {"rhoend": 0.0},
            {"rhobeg": 1e-3, "rhoend": 1e-2},
            {"npt": 3},
            {"npt": 7},
            {"maxfev": 5},
            {"maxiter": 0},
            {"eta1": 0.8, "eta2": 0.5},
            {"eta2": 1.0},
            {"gamma1": 1.0},
            {"gamma2": 1.0},
            {"maxhist": -1},
        ]:
            with pytest.raises(ValueError):
                minimize(self.fun, self.x0, options=options)

        with pytest.warns(RuntimeWarning):
            minimize(self.fun, self.x0, options={"unknown": 1.0})

    def test_wrong_fun(self):
        with pytest.raises(TypeError):
            minimize("fun", self.x0)

    def test_wrong_x0(self):
        with pytest.raises(ValueError):
            minimize(self.fun, [[0.0, 1.0], [2.0, 3.0]])
