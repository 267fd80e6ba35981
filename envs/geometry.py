# -*- coding: utf-8 -*-
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

Point = Tuple[float, float]


def distance(x1, y1, x2, y2):
    return math.hypot(x2 - x1, y2 - y1)


def wrap_angle(theta):
    """Wrap an angle into (-pi, pi]."""
    w = math.pi - ((math.pi - theta) % (2.0 * math.pi))
    # float % can round up to exactly 2pi just above pi
    return math.pi if w <= -math.pi else w


@dataclass(frozen=True)
class Segment:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self):
        return distance(self.x1, self.y1, self.x2, self.y2)


def segment_intersection(ray: Segment, wall: Segment) -> Optional[Point]:
    """
    Parametric segment/segment test. A hit counts only when both parameters
    are strictly inside (0, 1), so touching an endpoint is not a hit.
    Parallel or collinear segments never intersect.
    """
    x1, y1, x2, y2 = ray.x1, ray.y1, ray.x2, ray.y2
    x3, y3, x4, y4 = wall.x1, wall.y1, wall.x2, wall.y2

    den = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if den == 0:
        return None
    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / den
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / den
    if 0.0 < t < 1.0 and 0.0 < u < 1.0:
        return (x1 + t * (x2 - x1), y1 + t * (y2 - y1))
    return None


@dataclass
class Arena:
    """Rectangular arena [0, width] x [0, height] bounded by four walls."""
    width: float
    height: float

    def walls(self) -> List[Segment]:
        w, h = self.width, self.height
        return [
            Segment(0.0, 0.0, w, 0.0),      # top
            Segment(w, 0.0, w, h),          # right
            Segment(w, h, 0.0, h),          # bottom
            Segment(0.0, h, 0.0, 0.0),      # left
        ]

    @property
    def center(self) -> Point:
        return (self.width * 0.5, self.height * 0.5)

    def contains_disc(self, x, y, r=0.0):
        return (r <= x <= self.width - r) and (r <= y <= self.height - r)

    def ray_intersection(self, ray: Segment) -> Optional[Point]:
        """Nearest wall hit along the ray, measured from its origin."""
        closest = None
        min_d = math.inf
        for wall in self.walls():
            pt = segment_intersection(ray, wall)
            if pt is not None:
                d = distance(ray.x1, ray.y1, pt[0], pt[1])
                if d < min_d:
                    min_d = d
                    closest = pt
        return closest

    def sample_point(self, rng: np.random.Generator, margin=0.0) -> Point:
        x = rng.uniform(margin, self.width - margin)
        y = rng.uniform(margin, self.height - margin)
        return (float(x), float(y))
