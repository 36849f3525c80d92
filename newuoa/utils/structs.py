import numpy as np


class Window:
    """
    Fixed-capacity ring buffer of the most recent values of a quantity.

    The trust-region framework keeps the norms of the recent steps and the
    recent errors of the model in such windows. When the resolution is
    reduced, the windows are refilled with a sentinel value.
    """

    def __init__(self, size, fill_value):
        """
        Initialize the window.

        Parameters
        ----------
        size : int
            Capacity of the window.
        fill_value : float
            Value stored in every slot of the window initially and after each
            reset.
        """
        if size <= 0:
            raise ValueError('The size of the window must be positive.')
        self._values = np.full(size, fill_value, dtype=float)
        self._fill_value = float(fill_value)
        self._head = 0

    def __len__(self):
        return self._values.size

    def __repr__(self):
        return f'{self.__class__.__name__}({self.values.tolist()})'

    @property
    def values(self):
        """
        Values in the window, from the oldest to the most recent.

        Returns
        -------
        `numpy.ndarray`, shape (size,)
            Values in the window.
        """
        return np.roll(self._values, -self._head)

    def push(self, value):
        """
        Push a value into the window, overwriting the oldest one.
        """
        self._values[self._head] = value
        self._head = (self._head + 1) % self._values.size

    def reset(self):
        """
        Refill the window with the sentinel value.
        """
        self._values.fill(self._fill_value)
        self._head = 0

    def all(self, cond):
        """
        Whether `cond` holds for every value in the window.

        Parameters
        ----------
        cond : callable
            Vectorized predicate ``cond(values) -> numpy.ndarray of bool``.

        Returns
        -------
        bool
        """
        return bool(np.all(cond(self._values)))

    def any(self, cond):
        """
        Whether `cond` holds for at least one value in the window.
        """
        return bool(np.any(cond(self._values)))
