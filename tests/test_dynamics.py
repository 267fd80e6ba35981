import math

import numpy as np
import pytest

import config as cfg
from envs.dynamics import DiscreteUnicycle


@pytest.fixture
def model():
    m = DiscreteUnicycle(cfg.ACTION_TABLE)
    m.reset(400.0, 300.0, 0.0)
    return m


@pytest.mark.parametrize("action, speed, turn", [
    (0, 3.0, 0.0),
    (1, 1.5, -0.1),
    (2, 1.5, 0.1),
    (3, -2.0, 0.0),
])
def test_action_table(model, action, speed, turn):
    x, y, th, v, w = model.step(action)
    assert v == pytest.approx(speed)
    assert w == pytest.approx(turn)
    # position moves along the heading held before the turn
    assert x == pytest.approx(400.0 + speed)
    assert y == pytest.approx(300.0)
    assert th == pytest.approx(turn)


def test_heading_is_not_normalized(model):
    for _ in range(100):
        model.step(2)
    assert model.pose[2] == pytest.approx(10.0)
    assert model.pose[2] > math.pi


def test_reset_clears_velocity(model):
    model.step(0)
    state = model.reset(10.0, 20.0, -math.pi / 2)
    assert np.allclose(state, [10.0, 20.0, -math.pi / 2, 0.0, 0.0])
    assert model.speed == 0.0


@pytest.mark.parametrize("bad", [-1, 4, 10, 1.0, "0", True, None])
def test_invalid_action_is_fatal(model, bad):
    before = model.state.copy()
    with pytest.raises(ValueError):
        model.step(bad)
    assert np.array_equal(model.state, before)


def test_numpy_integer_actions_accepted(model):
    model.step(np.int64(0))
    assert model.speed == pytest.approx(3.0)
