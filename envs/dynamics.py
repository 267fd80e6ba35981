# -*- coding: utf-8 -*-
import math
from numbers import Integral

import numpy as np


class DiscreteUnicycle:
    """
    action = index into action_table, each entry (speed, turn_rate)
    state = [x, y, theta, v, w]
    Heading is left unbounded.
    """
    def __init__(self, action_table):
        self.table = tuple((float(v), float(w)) for v, w in action_table)
        self.state = None

    @property
    def n_actions(self):
        return len(self.table)

    def reset(self, x, y, theta):
        self.state = np.array([x, y, theta, 0.0, 0.0], dtype=np.float64)
        return self.state.copy()

    def validate(self, action):
        if isinstance(action, (bool, np.bool_)) or not isinstance(action, Integral):
            raise ValueError(f"action must be an integer index, got {action!r}")
        if not 0 <= action < len(self.table):
            raise ValueError(f"action {action} outside [0, {len(self.table)})")
        return int(action)

    def step(self, action):
        if self.state is None:
            raise RuntimeError("step() called before reset()")
        v, w = self.table[self.validate(action)]

        x, y, th, _, _ = self.state
        # position moves along the pre-turn heading
        x = x + math.cos(th) * v
        y = y + math.sin(th) * v
        th = th + w

        self.state[:] = [x, y, th, v, w]
        return self.state.copy()

    @property
    def pose(self):
        x, y, th, _, _ = self.state
        return float(x), float(y), float(th)

    @property
    def speed(self):
        return float(self.state[3])
