import warnings

import numpy as np
from scipy.linalg import get_blas_funcs

from .problem import check_exit
from .settings import ExitStatus, Options
from .utils import CallbackSuccess, max_abs_arrays


class Interpolation:
    """
    Interpolation set.

    This class stores a base point around which the models are expanded and the
    interpolation points. The coordinates of the interpolation points are
    relative to the base point.
    """

    def __init__(self, pb, options):
        """
        Initialize the interpolation set.

        Parameters
        ----------
        pb : Problem
            Problem to be solved.
        options : dict
            Options of the solver.
        """
        # Reduce the initial trust-region radius if necessary.
        max_radius = 0.5 * np.min(pb.bounds.xu - pb.bounds.xl)
        if options[Options.RHOBEG] > max_radius:
            options[Options.RHOBEG.value] = max_radius
            options[Options.RHOEND.value] = min(options[Options.RHOEND], max_radius)
        rhobeg = options[Options.RHOBEG]
        xl = pb.bounds.xl
        xu = pb.bounds.xu

        # Set the initial point around which the models are expanded.
        self._x_base = np.copy(pb.x0)
        very_close_xl_idx = self.x_base <= xl + 0.5 * rhobeg
        self.x_base[very_close_xl_idx] = xl[very_close_xl_idx]
        close_xl_idx = (xl + 0.5 * rhobeg < self.x_base) & (self.x_base <= xl + rhobeg)
        self.x_base[close_xl_idx] = np.minimum(xl[close_xl_idx] + rhobeg, xu[close_xl_idx])
        very_close_xu_idx = self.x_base >= xu - 0.5 * rhobeg
        self.x_base[very_close_xu_idx] = xu[very_close_xu_idx]
        close_xu_idx = (self.x_base < xu - 0.5 * rhobeg) & (xu - rhobeg <= self.x_base)
        self.x_base[close_xu_idx] = np.maximum(xu[close_xu_idx] - rhobeg, xl[close_xu_idx])

        # Set the initial interpolation set. The first n points are moved along
        # the coordinate directions, the next n points are moved along the
        # opposite directions, and the remaining ones along two coordinate
        # directions at once.
        n = pb.n
        self._xpt = np.zeros((n, options[Options.NPT]))
        for k in range(1, options[Options.NPT]):
            if k <= n:
                if very_close_xu_idx[k - 1]:
                    self.xpt[k - 1, k] = -rhobeg
                else:
                    self.xpt[k - 1, k] = rhobeg
            elif k <= 2 * n:
                if very_close_xl_idx[k - n - 1]:
                    self.xpt[k - n - 1, k] = 2.0 * rhobeg
                elif very_close_xu_idx[k - n - 1]:
                    self.xpt[k - n - 1, k] = -2.0 * rhobeg
                else:
                    self.xpt[k - n - 1, k] = -rhobeg
            else:
                spread = (k - n - 1) // n
                k1 = k - (1 + spread) * n - 1
                k2 = (k1 + spread) % n
                self.xpt[k1, k] = self.xpt[k1, k1 + 1]
                self.xpt[k2, k] = self.xpt[k2, k2 + 1]

    @property
    def n(self):
        """
        Number of variables.

        Returns
        -------
        int
            Number of variables.
        """
        return self.xpt.shape[0]

    @property
    def npt(self):
        """
        Number of interpolation points.

        Returns
        -------
        int
            Number of interpolation points.
        """
        return self.xpt.shape[1]

    @property
    def xpt(self):
        """
        Interpolation points.

        Returns
        -------
        numpy.ndarray, shape (n, npt)
            Interpolation points.
        """
        return self._xpt

    @xpt.setter
    def xpt(self, xpt):
        self._xpt = xpt
        assert self.xpt.shape == (self.n, self.npt), 'The shape of `xpt` is not valid.'

    @property
    def x_base(self):
        """
        Base point around which the models are expanded.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Base point around which the models are expanded.
        """
        return self._x_base

    @x_base.setter
    def x_base(self, x_base):
        self._x_base = x_base
        assert self.x_base.shape == (self.n,), 'The shape of `x_base` is not valid.'

    def point(self, k):
        """
        Get the `k`-th interpolation point.

        The return point is relative to the origin.

        Parameters
        ----------
        k : int
            Index of the interpolation point.

        Returns
        -------
        numpy.ndarray, shape (n,)
            `k`-th interpolation point.
        """
        assert 0 <= k < self.npt, 'The index `k` is not valid.'
        return self.x_base + self.xpt[:, k]


class InverseKKT:
    r"""
    Factored inverse of the KKT matrix of the interpolation problem.

    The inverse of the KKT matrix of the least Frobenius norm interpolation
    problem is stored as

    .. math::

        \begin{bmatrix}
            \Omega  & \Xi^{\mathsf{T}}\\
            \Xi     & \Upsilon
        \end{bmatrix},

    where the ``(npt + n) x n`` matrix :math:`[\Xi_{:, :npt} \; \Upsilon]^{\mathsf{T}}`
    is stored in `bmat` (without the row corresponding to the constant term),
    and :math:`\Omega = Z D Z^{\mathsf{T}}` with :math:`Z` stored in `zmat`
    and :math:`D` a diagonal matrix whose first `idz` diagonal elements are
    :math:`-1` and whose others are :math:`1`.

    References
    ----------
    .. [1] M. J. D. Powell. On updating the inverse of a KKT matrix. In Y.
       Yuan, editor, *Numerical Linear Algebra and Optimization*, pages
       56--78. Science Press, Beijing, China, 2004.
    """

    def __init__(self, interpolation, radius):
        """
        Build the factorization for the initial interpolation set.

        Parameters
        ----------
        interpolation : Interpolation
            Initial interpolation set.
        radius : float
            Initial trust-region radius used to build the interpolation set.
        """
        n, npt = interpolation.n, interpolation.npt
        xpt = interpolation.xpt
        rhosq = radius ** 2.0
        self._bmat = np.zeros((n, npt + n))
        self._zmat = np.zeros((npt, npt - n - 1))
        self._idz = 0
        for k in range(1, npt):
            if k <= n:
                # Without the opposite point, the gradient along the coordinate
                # direction is given by a forward difference.
                if npt <= k + n:
                    i = k - 1
                    self._bmat[i, 0] = -1.0 / xpt[i, k]
                    self._bmat[i, k] = 1.0 / xpt[i, k]
                    self._bmat[i, npt + i] = -0.5 * rhosq
            elif k <= 2 * n:
                i = k - n - 1
                alpha = xpt[i, i + 1]
                beta = xpt[i, k]
                self._bmat[i, 0] = -(alpha + beta) / (alpha * beta)
                self._bmat[i, k] = -0.5 / alpha
                self._bmat[i, i + 1] = -self._bmat[i, 0] - self._bmat[i, k]
                self._zmat[0, i] = np.sqrt(2.0) / (alpha * beta)
                self._zmat[k, i] = np.sqrt(0.5) / rhosq
                self._zmat[i + 1, i] = -self._zmat[0, i] - self._zmat[k, i]
            else:
                shift = (k - n - 1) // n
                i = k - (1 + shift) * n - 1
                j = (i + shift) % n
                self._zmat[0, k - n - 1] = 1.0 / rhosq
                self._zmat[k, k - n - 1] = 1.0 / rhosq
                self._zmat[i + 1, k - n - 1] = -1.0 / rhosq
                self._zmat[j + 1, k - n - 1] = -1.0 / rhosq

    @property
    def n(self):
        return self._bmat.shape[0]

    @property
    def npt(self):
        return self._zmat.shape[0]

    @property
    def bmat(self):
        """
        Last ``n`` rows of the inverse of the KKT matrix.

        Returns
        -------
        numpy.ndarray, shape (n, npt + n)
            Matrix :math:`[\\Xi_{:, :npt} \\; \\Upsilon]` without the row of the
            constant term.
        """
        return self._bmat

    @property
    def zmat(self):
        """
        Factor of the leading ``npt x npt`` submatrix of the inverse of the KKT
        matrix.

        Returns
        -------
        numpy.ndarray, shape (npt, npt - n - 1)
            Factor :math:`Z` such that :math:`\\Omega = Z D Z^{\\mathsf{T}}`.
        """
        return self._zmat

    @property
    def idz(self):
        """
        Number of negative diagonal elements of :math:`D`.

        Returns
        -------
        int
            Number of negative diagonal elements of :math:`D`.
        """
        return self._idz

    @property
    def dz(self):
        """
        Diagonal elements of :math:`D`.

        Returns
        -------
        numpy.ndarray, shape (npt - n - 1,)
            Diagonal elements of :math:`D`.
        """
        dz = np.ones(self._zmat.shape[1])
        dz[:self._idz] = -1.0
        return dz

    def omega(self, k):
        """
        Get the `k`-th column of :math:`\\Omega`.

        It contains the coefficients of the implicit Hessian matrix of the
        `k`-th Lagrange function.
        """
        return self._zmat @ (self.dz * self._zmat[k, :])

    def alpha(self, k=None):
        """
        Get the diagonal element(s) of :math:`\\Omega`.

        Parameters
        ----------
        k : int, optional
            Index of the diagonal element. All diagonal elements are returned
            if `k` is not specified.

        Returns
        -------
        {float, numpy.ndarray, shape (npt,)}
            Diagonal element(s) of :math:`\\Omega`.
        """
        if k is None:
            return np.square(self._zmat) @ self.dz
        return self.dz @ np.square(self._zmat[k, :])

    def solve(self, values):
        """
        Solve the least Frobenius norm interpolation problem.

        Parameters
        ----------
        values : numpy.ndarray, shape (npt,)
            Values to be interpolated.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Gradient of the interpolant at the base point.
        numpy.ndarray, shape (npt,)
            Implicit Hessian matrix of the interpolant.
        """
        grad = self._bmat[:, :self.npt] @ values
        i_hess = self._zmat @ (self.dz * (self._zmat.T @ values))
        return grad, i_hess

    def lagrange(self, xpt, k_opt, step):
        """
        Evaluate the Lagrange functions at a trial point.

        Parameters
        ----------
        xpt : numpy.ndarray, shape (n, npt)
            Interpolation points, relative to the base point.
        k_opt : int
            Index of the interpolation point around which the trial point is
            built.
        step : numpy.ndarray, shape (n,)
            Trial step from ``xpt[:, k_opt]``.

        Returns
        -------
        numpy.ndarray, shape (npt + n,)
            Values of the Lagrange functions at the trial point, followed by
            the product of the last ``n`` rows of the inverse of the KKT matrix
            with the trial point vector.
        float
            Value of :math:`\\beta` in the updating formula.
        """
        n, npt = self.n, self.npt
        x_opt = xpt[:, k_opt]
        xpt_step = xpt.T @ step
        xpt_x_opt = xpt.T @ x_opt
        check = xpt_step * (0.5 * xpt_step + xpt_x_opt)
        z_check = self._zmat.T @ check
        dz_check = self.dz * z_check

        vlag = np.empty(npt + n)
        vlag[:npt] = self._bmat[:, :npt].T @ step + self._zmat @ dz_check
        vlag[k_opt] += 1.0
        b_check = self._bmat[:, :npt] @ check
        b_step = self._bmat[:, npt:] @ step
        vlag[npt:] = b_check + b_step

        step_sq = step @ step
        x_opt_sq = x_opt @ x_opt
        step_x_opt = step @ x_opt
        beta = -z_check @ dz_check + step_x_opt ** 2.0 + step_sq * (x_opt_sq + 2.0 * step_x_opt + 0.5 * step_sq) - (2.0 * b_check @ step + b_step @ step)
        return vlag, beta

    def update(self, xpt, k_opt, k_new, step):
        """
        Update the factorization when the `k_new`-th interpolation point is
        replaced by ``xpt[:, k_opt] + step``.

        The interpolation points must not be updated before calling this
        method.

        Raises
        ------
        numpy.linalg.LinAlgError
            If the denominator of the updating formula is zero.
        """
        n, npt = self.n, self.npt
        vlag, beta = self.lagrange(xpt, k_opt, step)

        # Apply Givens rotations to put zeros in the k_new-th row of zmat.
        # After this, only the first and the idz-th columns of zmat have
        # nonzero entries in the k_new-th row.
        rotg, rot = get_blas_funcs(('rotg', 'rot'), (self._zmat,))
        jdz = 0
        for j in range(1, npt - n - 1):
            if j == self._idz:
                jdz = self._idz
            elif abs(self._zmat[k_new, j]) > 0.0:
                cval, sval = rotg(self._zmat[k_new, jdz], self._zmat[k_new, j])
                self._zmat[:, jdz], self._zmat[:, j] = rot(self._zmat[:, jdz], self._zmat[:, j], cval, sval)
                self._zmat[k_new, j] = 0.0

        # Evaluate the denominator of the updating formula.
        scala = self._zmat[k_new, 0] if self._idz == 0 else -self._zmat[k_new, 0]
        scalb = 0.0 if jdz == 0 else self._zmat[k_new, jdz]
        omega = scala * self._zmat[:, 0] + scalb * self._zmat[:, jdz]
        alpha = omega[k_new]
        tau = vlag[k_new]
        sigma = alpha * beta + tau ** 2.0
        vlag[k_new] -= 1.0
        if abs(sigma) <= np.finfo(float).tiny * max_abs_arrays(self._bmat, self._zmat):
            raise np.linalg.LinAlgError('The denominator of the updating formula is zero.')

        # Update zmat. A column is removed from the negative part of the
        # factorization when it has become positive.
        reduce = False
        hval = np.sqrt(abs(sigma))
        if jdz == 0:
            scala = tau / hval
            scalb = self._zmat[k_new, 0] / hval
            self._zmat[:, 0] = scala * self._zmat[:, 0] - scalb * vlag[:npt]
            if sigma < 0.0:
                if self._idz == 0:
                    self._idz = 1
                else:
                    reduce = True
        else:
            kdz = jdz if beta >= 0.0 else 0
            jdz -= kdz
            tempa = self._zmat[k_new, jdz] * beta / sigma
            tempb = self._zmat[k_new, jdz] * tau / sigma
            temp = self._zmat[k_new, kdz]
            scala = 1.0 / np.sqrt(abs(beta) * temp ** 2.0 + tau ** 2.0)
            scalb = scala * hval
            self._zmat[:, kdz] = tau * self._zmat[:, kdz] - temp * vlag[:npt]
            self._zmat[:, kdz] *= scala
            self._zmat[:, jdz] -= tempa * omega + tempb * vlag[:npt]
            self._zmat[:, jdz] *= scalb
            if sigma <= 0.0:
                if beta < 0.0:
                    self._idz += 1
                else:
                    reduce = True
        if reduce:
            self._idz -= 1
            self._zmat[:, [0, self._idz]] = self._zmat[:, [self._idz, 0]]

        # Update bmat. Its last n columns form a symmetric matrix.
        b_sav = np.copy(self._bmat[:, k_new])
        for j in range(n):
            tempa = (alpha * vlag[npt + j] - tau * b_sav[j]) / sigma
            tempb = (-beta * b_sav[j] - tau * vlag[npt + j]) / sigma
            self._bmat[j, :npt] += tempa * vlag[:npt] + tempb * omega
            self._bmat[j, npt:npt + j + 1] += tempa * vlag[npt:npt + j + 1] + tempb * b_sav[:j + 1]
            self._bmat[:j + 1, npt + j] = self._bmat[j, npt:npt + j + 1]

    def shift_base(self, xpt, x_opt):
        """
        Update the factorization when the base point is moved by `x_opt`.

        Parameters
        ----------
        xpt : numpy.ndarray, shape (n, npt)
            Interpolation points, relative to the former base point.
        x_opt : numpy.ndarray, shape (n,)
            Displacement of the base point.
        """
        npt = self.npt
        length = 0.25 * (x_opt @ x_opt)
        w = xpt.T @ x_opt - 2.0 * length
        h_xpt = xpt - 0.5 * x_opt[:, np.newaxis]

        # Update the part of bmat that does not depend on zmat.
        s = h_xpt * w + length * x_opt[:, np.newaxis]
        update = self._bmat[:, :npt] @ s.T
        self._bmat[:, npt:] += update + update.T

        # Update the part of bmat that depends on zmat.
        update = length * np.outer(x_opt, np.sum(self._zmat, axis=0)) + h_xpt @ (self._zmat * w[:, np.newaxis])
        dz_update = update * self.dz
        self._bmat[:, :npt] += dz_update @ self._zmat.T
        self._bmat[:, npt:] += dz_update @ update.T


class Quadratic:
    """
    Quadratic model.

    This class stores the Hessian matrix of the quadratic model using the
    implicit/explicit representation designed by Powell for NEWUOA [1]_. The
    model has no constant term, as only the differences between its values are
    meaningful.

    References
    ----------
    .. [1] M. J. D. Powell. The NEWUOA software for unconstrained optimization
       without derivatives. In G. Di Pillo and M. Roma, editors, *Large-Scale
       Nonlinear Optimization*, volume 83 of *Nonconvex Optimization and Its
       Applications*, pages 255--297. Springer, Boston, MA, USA, 2006.
    """

    def __init__(self, interpolation, values, kkt=None):
        """
        Initialize the quadratic model.

        Parameters
        ----------
        interpolation : Interpolation
            Interpolation set.
        values : numpy.ndarray, shape (npt,)
            Values of the interpolated function at the interpolation points.
        kkt : InverseKKT, optional
            Factorization of the inverse of the KKT matrix. If it is provided,
            the least Frobenius norm interpolant is built. Otherwise, the
            interpolation set must be the initial one, and the model is built
            from finite differences.
        """
        assert values.shape == (interpolation.npt,), 'The shape of `values` is not valid.'
        n, npt = interpolation.n, interpolation.npt
        if npt < n + 2:
            raise ValueError(f'The number of interpolation points must be at least {n + 2}.')
        self._e_hess = np.zeros((n, n))
        if kkt is not None:
            self._grad, self._i_hess = kkt.solve(values)
            return

        self._grad = np.zeros(n)
        self._i_hess = np.zeros(npt)
        xpt = interpolation.xpt
        for k in range(1, min(npt, 2 * n + 1)):
            if k <= n:
                i = k - 1
                self._grad[i] = (values[k] - values[0]) / xpt[i, k]
            else:
                i = k - n - 1
                alpha = xpt[i, i + 1]
                beta = xpt[i, k]
                grad_a = self._grad[i]
                grad_b = (values[k] - values[0]) / beta
                self._e_hess[i, i] = 2.0 * (grad_b - grad_a) / (beta - alpha)
                self._grad[i] = (grad_a * beta - grad_b * alpha) / (beta - alpha)
        for k in range(2 * n + 1, npt):
            shift = (k - n - 1) // n
            i = k - (1 + shift) * n - 1
            j = (i + shift) % n
            self._e_hess[i, j] = (values[0] - values[i + 1] - values[j + 1] + values[k]) / (xpt[i, k] * xpt[j, k])
            self._e_hess[j, i] = self._e_hess[i, j]

    def __call__(self, x, interpolation):
        """
        Evaluate the quadratic model at a given point.

        Parameters
        ----------
        x : numpy.ndarray, shape (n,)
            Point at which the quadratic model is evaluated.
        interpolation : Interpolation
            Interpolation set.

        Returns
        -------
        float
            Value of the quadratic model at `x`.
        """
        assert x.shape == (self.n,), 'The shape of `x` is not valid.'
        x_diff = x - interpolation.x_base
        return self._grad @ x_diff + 0.5 * (self._i_hess @ np.square(interpolation.xpt.T @ x_diff) + x_diff @ self._e_hess @ x_diff)

    @property
    def n(self):
        """
        Number of variables.

        Returns
        -------
        int
            Number of variables.
        """
        return self._grad.size

    @property
    def npt(self):
        """
        Number of interpolation points used to define the quadratic model.

        Returns
        -------
        int
            Number of interpolation points used to define the quadratic model.
        """
        return self._i_hess.size

    def grad(self, x, interpolation):
        """
        Evaluate the gradient of the quadratic model at a given point.

        Parameters
        ----------
        x : numpy.ndarray, shape (n,)
            Point at which the gradient of the quadratic model is evaluated.
        interpolation : Interpolation
            Interpolation set.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Gradient of the quadratic model at `x`.
        """
        assert x.shape == (self.n,), 'The shape of `x` is not valid.'
        x_diff = x - interpolation.x_base
        return self._grad + self.hess_prod(x_diff, interpolation)

    def hess(self, interpolation):
        """
        Evaluate the Hessian matrix of the quadratic model.

        Parameters
        ----------
        interpolation : Interpolation
            Interpolation set.

        Returns
        -------
        numpy.ndarray, shape (n, n)
            Hessian matrix of the quadratic model.
        """
        return self._e_hess + interpolation.xpt @ (self._i_hess[:, np.newaxis] * interpolation.xpt.T)

    def hess_prod(self, v, interpolation):
        """
        Evaluate the right product of the Hessian matrix of the quadratic model
        with a given vector.

        Parameters
        ----------
        v : numpy.ndarray, shape (n,)
            Vector with which the Hessian matrix of the quadratic model is
            multiplied from the right.
        interpolation : Interpolation
            Interpolation set.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Right product of the Hessian matrix of the quadratic model with `v`.
        """
        assert v.shape == (self.n,), 'The shape of `v` is not valid.'
        return self._e_hess @ v + interpolation.xpt @ (self._i_hess * (interpolation.xpt.T @ v))

    def curv(self, v, interpolation):
        """
        Evaluate the curvature of the quadratic model along a given direction.

        Parameters
        ----------
        v : numpy.ndarray, shape (n,)
            Direction along which the curvature of the quadratic model is
            evaluated.
        interpolation : Interpolation
            Interpolation set.

        Returns
        -------
        float
            Curvature of the quadratic model along `v`.
        """
        assert v.shape == (self.n,), 'The shape of `v` is not valid.'
        return v @ self._e_hess @ v + self._i_hess @ np.square(interpolation.xpt.T @ v)

    def update(self, interpolation, k_new, dir_old, moderr, kkt):
        """
        Update the quadratic model.

        This method applies the derivative-free symmetric Broyden update to the
        quadratic model, i.e., it adds to the model the `k_new`-th Lagrange
        function multiplied by the error of the model at the new point.

        Parameters
        ----------
        interpolation : Interpolation
            Interpolation set.
        k_new : int
            Index of the updated interpolation point.
        dir_old : numpy.ndarray, shape (n,)
            Value of ``interpolation.xpt[:, k_new]`` before the update.
        moderr : float
            Difference between the value of the interpolated function and the
            value of the model at the new point.
        kkt : InverseKKT
            Updated factorization of the inverse of the KKT matrix.
        """
        assert 0 <= k_new < self.npt, 'The index `k_new` is not valid.'
        assert dir_old.shape == (self.n,), 'The shape of `dir_old` is not valid.'

        # Forward the k_new-th element of the implicit Hessian matrix to the
        # explicit Hessian matrix. This must be done because the implicit
        # Hessian matrix is related to the interpolation points, and the
        # k_new-th interpolation point is modified.
        self._e_hess += self._i_hess[k_new] * np.outer(dir_old, dir_old)
        self._i_hess[k_new] = 0.0

        # Add the scaled Lagrange function to the model.
        self._i_hess += moderr * kkt.omega(k_new)
        self._grad += moderr * kkt.bmat[:, k_new]

    def shift_x_base(self, interpolation, new_x_base):
        """
        Shift the point around which the quadratic model is defined.

        Parameters
        ----------
        interpolation : Interpolation
            Previous interpolation set.
        new_x_base : numpy.ndarray, shape (n,)
            Point that will replace ``interpolation.x_base``.
        """
        assert new_x_base.shape == (self.n,), 'The shape of `new_x_base` is not valid.'
        self._grad = self.grad(new_x_base, interpolation)
        shift = new_x_base - interpolation.x_base
        update = np.outer(shift, (interpolation.xpt - 0.5 * shift[:, np.newaxis]) @ self._i_hess)
        self._e_hess += update + update.T


class Models:
    """
    Quadratic model of the objective function and its interpolation set.
    """

    def __init__(self, pb, options):
        """
        Initialize the models.

        The objective function is evaluated at the initial interpolation
        points, and the procedure stops as soon as a termination criterion is
        met. In such a case, `status_init` is the reason for stopping.

        Parameters
        ----------
        pb : Problem
            Problem to be solved.
        options : dict
            Options of the solver.
        """
        # Set the initial interpolation set.
        self._debug = options[Options.DEBUG]
        self._interpolation = Interpolation(pb, options)

        # Evaluate the objective function at the initial interpolation points.
        self._fun_val = np.full(options[Options.NPT], np.nan)
        self._status_init = None
        for k in range(options[Options.NPT]):
            x_eval = self.interpolation.point(k)
            try:
                self.fun_val[k] = pb(x_eval)
            except CallbackSuccess as exc:
                self.fun_val[k] = exc.value
                self._status_init = ExitStatus.CALLBACK_SUCCESS
            else:
                self._status_init = check_exit(pb.n_eval, self.fun_val[k], x_eval, options)
            if self._status_init is not None:
                break
        if np.all(np.isnan(self.fun_val)):
            self._k_opt = 0
        else:
            self._k_opt = int(np.nanargmin(self.fun_val))

        # Build the factorization and the initial quadratic model.
        self._kkt = None
        self._fun = None
        if self._status_init is None:
            self._kkt = InverseKKT(self.interpolation, options[Options.RHOBEG])
            self._fun = Quadratic(self.interpolation, self.fun_val)
            if self._debug:
                self._check_interpolation_conditions()

    @property
    def n(self):
        """
        Dimension of the problem.

        Returns
        -------
        int
            Dimension of the problem.
        """
        return self.interpolation.n

    @property
    def npt(self):
        """
        Number of interpolation points.

        Returns
        -------
        int
            Number of interpolation points.
        """
        return self.interpolation.npt

    @property
    def interpolation(self):
        """
        Interpolation set.

        Returns
        -------
        Interpolation
            Interpolation set.
        """
        return self._interpolation

    @property
    def kkt(self):
        """
        Factorization of the inverse of the KKT matrix.

        Returns
        -------
        InverseKKT
            Factorization of the inverse of the KKT matrix.
        """
        return self._kkt

    @property
    def fun_val(self):
        """
        Values of the objective function at the interpolation points.

        Returns
        -------
        numpy.ndarray, shape (npt,)
            Values of the objective function at the interpolation points.
        """
        return self._fun_val

    @property
    def k_opt(self):
        """
        Index of the best interpolation point.

        Returns
        -------
        int
            Index of the interpolation point with the least objective function
            value.
        """
        return self._k_opt

    @property
    def x_opt(self):
        """
        Best interpolation point.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Best interpolation point, relative to the origin.
        """
        return self.interpolation.point(self.k_opt)

    @property
    def fun_opt(self):
        """
        Least objective function value at the interpolation points.

        Returns
        -------
        float
            Least objective function value at the interpolation points.
        """
        return self.fun_val[self.k_opt]

    @property
    def status_init(self):
        """
        Reason for stopping during the initialization.

        Returns
        -------
        {ExitStatus, None}
            Reason for stopping, or None if the initialization completed.
        """
        return self._status_init

    def fun(self, x):
        """
        Evaluate the quadratic model of the objective function.

        The model is normalized so that it interpolates ``fun_val - fun_opt``.

        Parameters
        ----------
        x : numpy.ndarray, shape (n,)
            Point at which the quadratic model is evaluated.

        Returns
        -------
        float
            Value of the quadratic model at `x`.
        """
        return self._fun(x, self.interpolation) - self._fun(self.x_opt, self.interpolation)

    def fun_grad(self, x):
        """
        Evaluate the gradient of the quadratic model of the objective function.

        Parameters
        ----------
        x : numpy.ndarray, shape (n,)
            Point at which the gradient of the quadratic model is evaluated.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Gradient of the quadratic model at `x`.
        """
        return self._fun.grad(x, self.interpolation)

    def fun_hess(self):
        """
        Evaluate the Hessian matrix of the quadratic model of the objective
        function.

        Returns
        -------
        numpy.ndarray, shape (n, n)
            Hessian matrix of the quadratic model.
        """
        return self._fun.hess(self.interpolation)

    def fun_hess_prod(self, v):
        """
        Evaluate the right product of the Hessian matrix of the quadratic model
        of the objective function with a given vector.

        Parameters
        ----------
        v : numpy.ndarray, shape (n,)
            Vector with which the Hessian matrix of the quadratic model is
            multiplied from the right.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Right product of the Hessian matrix of the quadratic model with
            `v`.
        """
        return self._fun.hess_prod(v, self.interpolation)

    def fun_curv(self, v):
        """
        Evaluate the curvature of the quadratic model of the objective function
        along a given direction.

        Parameters
        ----------
        v : numpy.ndarray, shape (n,)
            Direction along which the curvature of the quadratic model is
            evaluated.

        Returns
        -------
        float
            Curvature of the quadratic model along `v`.
        """
        return self._fun.curv(v, self.interpolation)

    def fun_alt_grad(self, x):
        """
        Evaluate the gradient of the alternative quadratic model of the
        objective function.

        The alternative model is the least Frobenius norm interpolant of the
        objective function values.

        Parameters
        ----------
        x : numpy.ndarray, shape (n,)
            Point at which the gradient of the alternative quadratic model is
            evaluated.

        Returns
        -------
        numpy.ndarray, shape (n,)
            Gradient of the alternative quadratic model at `x`.
        """
        model = Quadratic(self.interpolation, self.fun_val - self.fun_opt, self.kkt)
        return model.grad(x, self.interpolation)

    def fun_decrease(self, step):
        """
        Evaluate the decrease of the quadratic model of the objective function
        along a step from the best interpolation point.

        Parameters
        ----------
        step : numpy.ndarray, shape (n,)
            Step from the best interpolation point.

        Returns
        -------
        float
            Decrease of the quadratic model along `step`.
        """
        return -(self.fun_grad(self.x_opt) @ step + 0.5 * self.fun_curv(step))

    def reset_models(self):
        """
        Set the quadratic model of the objective function to the alternative
        quadratic model.
        """
        self._fun = Quadratic(self.interpolation, self.fun_val - self.fun_opt, self.kkt)
        if self._debug:
            self._check_interpolation_conditions()

    def update_interpolation(self, k_new, step, fun_val):
        """
        Update the interpolation set.

        This method replaces the `k_new`-th interpolation point with
        ``x_opt + step``. It also updates the factorization of the inverse of
        the KKT matrix, the function values, and the quadratic model.

        Parameters
        ----------
        k_new : {int, None}
            Index of the updated interpolation point. Nothing is done if it is
            None.
        step : numpy.ndarray, shape (n,)
            Step from the best interpolation point to the new point.
        fun_val : float
            Objective function value at the new point.

        Raises
        ------
        numpy.linalg.LinAlgError
            If the factorization cannot be updated.
        """
        if k_new is None:
            return
        assert 0 <= k_new < self.npt, 'The index `k_new` is not valid.'
        assert step.shape == (self.n,), 'The shape of `step` is not valid.'

        # The model error is computed with the model before the update.
        moderr = fun_val - self.fun_opt + self.fun_decrease(step)
        x_new = self.interpolation.xpt[:, self.k_opt] + step

        # Update the factorization, then the model, then the points.
        self._kkt.update(self.interpolation.xpt, self.k_opt, k_new, step)
        dir_old = np.copy(self.interpolation.xpt[:, k_new])
        self._fun.update(self.interpolation, k_new, dir_old, moderr, self.kkt)
        self.interpolation.xpt[:, k_new] = x_new
        improved = fun_val < self.fun_opt
        self.fun_val[k_new] = fun_val
        if improved:
            self._k_opt = k_new
        elif k_new == self.k_opt:
            self._k_opt = int(np.nanargmin(self.fun_val))
        if self._debug:
            self._check_interpolation_conditions()

    def shift_x_base(self, options):
        """
        Move the base point to the best interpolation point without changing
        the interpolation set.

        Parameters
        ----------
        options : dict
            Options of the solver.
        """
        new_x_base = self.x_opt
        shift = np.copy(self.interpolation.xpt[:, self.k_opt])

        # Update the model and the factorization before the points.
        self._fun.shift_x_base(self.interpolation, new_x_base)
        self._kkt.shift_base(self.interpolation.xpt, shift)
        self.interpolation.x_base = new_x_base
        self.interpolation.xpt -= shift[:, np.newaxis]
        if options[Options.DEBUG]:
            self._check_interpolation_conditions()

    def _check_interpolation_conditions(self):
        """
        Check the interpolation conditions of the quadratic model.
        """
        error_fun = 0.0
        for k in range(self.npt):
            error_fun = max(error_fun, abs(self.fun(self.interpolation.point(k)) - (self.fun_val[k] - self.fun_opt)))
        tol = 10.0 * np.sqrt(np.finfo(float).eps) * max(self.n, self.npt)
        if error_fun > tol * np.max(np.abs(self.fun_val - self.fun_opt), initial=1.0):
            warnings.warn('The interpolation conditions for the objective function are not satisfied.', RuntimeWarning)
