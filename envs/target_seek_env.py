# -*- coding: utf-8 -*-
import math
import time
from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np
import gymnasium as gym
from gymnasium import spaces
import matplotlib.pyplot as plt

from .geometry import Arena, Segment, distance, wrap_angle
from .lidar import Lidar
from .dynamics import DiscreteUnicycle
from .reward import compute_reward


@dataclass
class ArenaConfig:
    width: float
    height: float
    robot_radius: float
    initial_heading: float
    target_margin: float
    sensor_count: int
    sensor_fov: float
    sensor_length: float
    near_field: float
    action_table: Tuple[Tuple[float, float], ...]
    seed: int


@dataclass(frozen=True)
class Frame:
    """Read-only snapshot handed to the render sink once per tick."""
    pose: Tuple[float, float, float]
    rays: Tuple[Segment, ...]
    readings: Tuple[float, ...]
    target: Tuple[float, float]


class TargetSeekEnv(gym.Env):
    """
    Observation (N + 2):
      - N range readings in [0, 1]
      - distance to target / arena width
      - bearing to target / pi, in [-1, 1]
    Action:
      - Discrete(4): forward, forward-left, forward-right, reverse
    """
    metadata = {
        "render_modes": ["human", "none"],
        "render_fps": 60,
    }

    def __init__(self, cfg: ArenaConfig, reward_cfg: dict):
        super().__init__()
        self.cfg = cfg
        self.rw = reward_cfg
        self.rng = np.random.default_rng(cfg.seed)

        self.arena = Arena(cfg.width, cfg.height)
        self.model = DiscreteUnicycle(cfg.action_table)
        self.lidar = Lidar(cfg.sensor_count, cfg.sensor_fov, cfg.sensor_length,
                           offset=cfg.robot_radius)

        max_d = math.hypot(cfg.width, cfg.height) / cfg.width
        low = np.concatenate([np.zeros(cfg.sensor_count), [0.0, -1.0]]).astype(np.float32)
        high = np.concatenate([np.ones(cfg.sensor_count), [max_d, 1.0]]).astype(np.float32)
        self.observation_space = spaces.Box(low=low, high=high, dtype=np.float32)
        self.action_space = spaces.Discrete(self.model.n_actions)

        self.target = np.zeros(2, dtype=np.float64)
        self.prev_goal_dist = None
        self.scan = None
        self.steps = 0
        self.render_fig = None
        self.render_ax = None

    @property
    def state_dim(self):
        return self.cfg.sensor_count + 2

    # ---------- Gym API ----------
    def reset(self, *, seed=None, options=None):
        if seed is not None:
            self.rng = np.random.default_rng(seed)

        cx, cy = self.arena.center
        self.model.reset(cx, cy, self.cfg.initial_heading)

        options = options or {}
        if options.get("target") is not None:
            tx, ty = options["target"]
        else:
            tx, ty = self.arena.sample_point(self.rng, self.cfg.target_margin)
        self.target[:] = (tx, ty)
        self.prev_goal_dist = self._goal_distance()
        self.steps = 0
        self.scan = self.lidar.scan(self.model.pose, self.arena)

        return self.state_vector(), {"distance": self.prev_goal_dist}

    def step(self, action):
        self.steps += 1
        self.model.step(action)
        x, y, _ = self.model.pose
        self.scan = self.lidar.scan(self.model.pose, self.arena)

        # body against the walls, or a sensor reading inside the near field
        out = not self.arena.contains_disc(x, y, self.cfg.robot_radius)
        near = self.scan.near_contact(self.cfg.near_field)
        collision = out or near

        d_now = self._goal_distance()
        reward, terminated, reached = compute_reward(
            self.prev_goal_dist, d_now, math.cos(self._bearing()),
            self.model.speed, collision, self.rw)
        self.prev_goal_dist = d_now

        info = {
            "is_success": reached,
            "collision": collision,
            "out_of_bounds": out,
            "distance": d_now,
        }
        return self.state_vector(), reward, terminated, False, info

    # ---------- external controls ----------
    def set_target(self, x, y):
        self.target[:] = (float(x), float(y))
        self.prev_goal_dist = self._goal_distance()

    # ---------- helpers ----------
    def _goal_distance(self):
        x, y, _ = self.model.pose
        return distance(x, y, self.target[0], self.target[1])

    def _bearing(self):
        x, y, th = self.model.pose
        return wrap_angle(math.atan2(self.target[1] - y, self.target[0] - x) - th)

    def state_vector(self):
        d_norm = self._goal_distance() / self.cfg.width
        a_norm = self._bearing() / math.pi
        obs = np.concatenate([
            self.scan.readings.astype(np.float32),
            np.array([d_norm, a_norm], dtype=np.float32),
        ], axis=0)
        if not np.all(np.isfinite(obs)):
            raise FloatingPointError(f"non-finite state vector: {obs}")
        return obs

    # ---------- render ----------
    def frame(self) -> Frame:
        return Frame(
            pose=self.model.pose,
            rays=tuple(self.scan.rays),
            readings=tuple(float(r) for r in self.scan.readings),
            target=(float(self.target[0]), float(self.target[1])),
        )

    def render(self, status: str = ""):
        fr = self.frame()
        if self.render_fig is None:
            self.render_fig, self.render_ax = plt.subplots(figsize=(8, 6))
            plt.ion(); plt.show(block=False)

        ax = self.render_ax
        ax.clear()
        ax.set_aspect('equal')
        ax.set_xlim(0, self.cfg.width)
        # canvas coordinates: y grows downward
        ax.set_ylim(self.cfg.height, 0)
        ax.set_title(status or f"Step {self.steps}")

        ax.plot([0, self.cfg.width, self.cfg.width, 0, 0],
                [0, 0, self.cfg.height, self.cfg.height, 0], lw=2)

        ax.add_patch(plt.Circle(fr.target, 10, color='green', alpha=0.8))

        x, y, th = fr.pose
        ax.plot([x, fr.target[0]], [y, fr.target[1]], ls='--', lw=1, color='green', alpha=0.3)
        for ray, r in zip(fr.rays, fr.readings):
            ax.plot([ray.x1, ray.x2], [ray.y1, ray.y2], color=(1.0, r, 0.0), alpha=0.5)
        ax.add_patch(plt.Circle((x, y), self.cfg.robot_radius, color='blue', alpha=0.9))
        ax.arrow(x, y, 1.5*self.cfg.robot_radius*np.cos(th), 1.5*self.cfg.robot_radius*np.sin(th),
                 head_width=5.0, length_includes_head=True, color='red')

        self.render_fig.canvas.draw()
        self.render_fig.canvas.flush_events()
        time.sleep(1.0 / self.metadata["render_fps"])

    def close(self):
        if self.render_fig is not None:
            plt.close(self.render_fig)
            self.render_fig = None
            self.render_ax = None


def make_env_from_config(cfg_module, **overrides):
    cfg = ArenaConfig(
        width=cfg_module.ARENA_WIDTH,
        height=cfg_module.ARENA_HEIGHT,
        robot_radius=cfg_module.ROBOT_RADIUS,
        initial_heading=cfg_module.INITIAL_HEADING,
        target_margin=cfg_module.TARGET_MARGIN,
        sensor_count=cfg_module.SENSOR_COUNT,
        sensor_fov=cfg_module.SENSOR_FOV,
        sensor_length=cfg_module.SENSOR_LENGTH,
        near_field=cfg_module.NEAR_FIELD,
        action_table=cfg_module.ACTION_TABLE,
        seed=cfg_module.N_SEED,
    )
    if overrides:
        cfg = replace(cfg, **overrides)

    reward_cfg = dict(
        PROGRESS_SCALE=cfg_module.PROGRESS_SCALE,
        STEP_PENALTY=cfg_module.STEP_PENALTY,
        ORIENTATION_SCALE=cfg_module.ORIENTATION_SCALE,
        COLLISION_PENALTY=cfg_module.COLLISION_PENALTY,
        GOAL_REWARD=cfg_module.GOAL_REWARD,
        GOAL_RADIUS=cfg_module.GOAL_RADIUS,
    )
    return TargetSeekEnv(cfg, reward_cfg)
