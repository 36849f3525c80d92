import numpy as np
import pytest

from ..structs import Window


class TestWindow:

    def test_simple(self):
        window = Window(3, np.inf)
        assert len(window) == 3
        np.testing.assert_array_equal(window.values, [np.inf, np.inf, np.inf])
        window.push(1.0)
        window.push(2.0)
        np.testing.assert_array_equal(window.values, [np.inf, 1.0, 2.0])
        assert not window.all(lambda v: v <= 2.0)
        assert window.any(lambda v: v <= 1.0)

        # The oldest value is overwritten first.
        window.push(3.0)
        window.push(4.0)
        np.testing.assert_array_equal(window.values, [2.0, 3.0, 4.0])
        assert window.all(lambda v: v <= 4.0)
        assert repr(window) == "Window([2.0, 3.0, 4.0])"

    def test_reset(self):
        window = Window(2, 10.0)
        window.push(1.0)
        window.push(2.0)
        window.reset()
        np.testing.assert_array_equal(window.values, [10.0, 10.0])
        window.push(3.0)
        np.testing.assert_array_equal(window.values, [10.0, 3.0])

    def test_wrong_size(self):
        with pytest.raises(ValueError):
            Window(0, 0.0)
