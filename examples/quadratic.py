#!/usr/bin/env python3
"""
Minimize a convex quadratic function, and stop the optimization procedure
from a callback as soon as the objective function value is small enough.
"""
from newuoa import minimize


def quad(x):
    return (x[0] - 5.0) ** 2.0 + (x[1] - 4.0) ** 2.0


def callback(intermediate_result):
    print(f"{intermediate_result.x} -> {intermediate_result.fun}")
    if intermediate_result.fun < 1e-3:
        raise StopIteration


if __name__ == "__main__":
    x0 = [0.0, 0.0]
    res = minimize(quad, x0, callback=callback, options={"disp": True})
    print(res)

    # The bounds [0, 3] x [0, 10] are active at the solution (3, 4).
    res = minimize(quad, x0, bounds=[[0.0, 3.0], [0.0, 10.0]], options={"store_history": True})
    print(res)
