# -*- coding: utf-8 -*-
import math
from dataclasses import dataclass, field
from typing import List

import numpy as np

from .geometry import Arena, Segment, distance


@dataclass
class Scan:
    readings: np.ndarray                   # (n,) in [0, 1]
    rays: List[Segment] = field(default_factory=list)

    def near_contact(self, threshold):
        return bool(np.any(self.readings < threshold))


class Lidar:
    def __init__(self, n_rays, fov, max_range, offset=0.0):
        self.n = int(n_rays)
        if self.n < 1 or self.n % 2 == 0:
            raise ValueError(f"n_rays must be a positive odd number, got {n_rays}")
        self.fov = float(fov)
        self.max_range = float(max_range)
        self.offset = float(offset)

    def angles(self, heading):
        if self.n == 1:
            return np.array([heading], dtype=np.float64)
        return heading - self.fov * 0.5 + np.linspace(0.0, self.fov, self.n)

    def scan(self, pose, arena: Arena) -> Scan:
        """
        pose: (x, y, theta)
        Every ray starts `offset` ahead of the body center and is cut at the
        nearest wall. Readings are the traveled fraction of max_range.
        """
        x, y, th = pose
        ox = x + math.cos(th) * self.offset
        oy = y + math.sin(th) * self.offset

        readings = np.ones(self.n, dtype=np.float32)
        rays = []
        for i, a in enumerate(self.angles(th)):
            ray = Segment(ox, oy,
                          ox + math.cos(a) * self.max_range,
                          oy + math.sin(a) * self.max_range)
            hit = arena.ray_intersection(ray)
            if hit is not None:
                readings[i] = distance(ox, oy, hit[0], hit[1]) / self.max_range
                ray = Segment(ox, oy, hit[0], hit[1])
            rays.append(ray)

        return Scan(readings=readings, rays=rays)
