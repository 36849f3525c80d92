#!/usr/bin/env python3
"""
Minimize the chained Rosenbrock function, first without constraints and then
subject to simple bounds.
"""
import numpy as np
from newuoa import minimize
from scipy.optimize import Bounds


def chrosen(x):
    return np.sum(4.0 * (x[:-1] - x[1:] ** 2.0) ** 2.0 + (1.0 - x[:-1]) ** 2.0)


if __name__ == "__main__":
    rng = np.random.default_rng(0)
    n = 10
    x0 = rng.uniform(-1.0, 1.0, n)
    res = minimize(chrosen, x0, options={"rhoend": 1e-8})
    print(res)

    # The bounds exclude the unconstrained solution.
    bounds = Bounds(-0.5 * np.ones(n), 0.5 * np.ones(n))
    res = minimize(chrosen, np.clip(x0, -0.5, 0.5), bounds=bounds)
    print(res)
