from __future__ import annotations

import numpy as np
import pytest

from galaxy_parameters import GalaxyParameters


class FixedDraws:
    """Stands in for numpy's Generator and returns prepared uniform draws."""

    def __init__(self, rows):
        self.rows = np.asarray(rows, dtype=np.float64)

    def random(self, size):
        assert tuple(size) == self.rows.shape
        return self.rows.copy()


@pytest.fixture
def small_params():
    return GalaxyParameters(count=500, radius=2.0, arms=4, spin=1.0, randomness=0.3)


@pytest.fixture
def fixed_draws():
    return FixedDraws
