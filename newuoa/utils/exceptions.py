class CallbackSuccess(StopIteration):
    """
    Exception raised when the callback function raises a ``StopIteration``.

    The objective function value of the point at which the callback stopped
    the optimization procedure is stored in the ``value`` attribute.
    """
    pass
