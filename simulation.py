# -*- coding: utf-8 -*-
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from dqn import DQNAgent
from envs.target_seek_env import make_env_from_config

log = logging.getLogger(__name__)


@dataclass
class SimulationContext:
    """Run-wide mutable state shared by the episode controller and the agent."""
    epsilon: float = 1.0
    training: bool = True
    episode: int = 0
    total_reward: float = 0.0
    tick: int = 0
    goals: int = 0
    collisions: int = 0


@dataclass(frozen=True)
class TickResult:
    action: int
    reward: float
    terminated: bool
    is_success: bool
    collision: bool
    distance: float
    episode_reward: float
    loss: Optional[float] = None


class Simulation:
    """
    Episode controller: drives one sense -> act -> learn cycle per tick and
    resets the episode (new target, robot back at center) on a terminal tick.

    With async_training the gradient step of tick k runs on a single worker
    thread while tick k+1 senses and acts. The step of tick k-1 is always
    awaited before the next one is submitted, so at most one step is in
    flight and the policy is never more than one tick behind.
    """
    def __init__(self, env, agent, ctx: SimulationContext,
                 async_training=False, post_load_epsilon=0.1, seed=None):
        self.env = env
        self.agent = agent
        self.ctx = ctx
        self.post_load_epsilon = post_load_epsilon
        self.last_loss = None

        self._executor = ThreadPoolExecutor(max_workers=1) if async_training else None
        self._pending = None

        self.state, _ = self.env.reset(seed=seed)

    # ---------- main loop ----------
    def tick(self) -> TickResult:
        state = self.state
        action = self.agent.act(state)
        next_state, reward, terminated, truncated, info = self.env.step(action)

        loss = None
        if self.ctx.training:
            self.agent.remember(state, action, reward, next_state, terminated)
            loss = self._train()

        self.ctx.tick += 1
        self.ctx.total_reward += reward
        result = TickResult(
            action=action,
            reward=float(reward),
            terminated=bool(terminated),
            is_success=bool(info["is_success"]),
            collision=bool(info["collision"]),
            distance=float(info["distance"]),
            episode_reward=self.ctx.total_reward,
            loss=loss,
        )

        if terminated or truncated:
            if info["is_success"]:
                self.ctx.goals += 1
            elif info["collision"]:
                self.ctx.collisions += 1
            log.debug("episode %d ended: reward=%.2f success=%s collision=%s",
                      self.ctx.episode, self.ctx.total_reward, info["is_success"], info["collision"])
            self.reset()
        else:
            self.state = next_state
        return result

    def _train(self):
        if self._executor is None:
            loss = self.agent.replay()
        else:
            loss = None
            if self._pending is not None:
                # re-raises anything the worker hit
                loss = self._pending.result()
            self._pending = self._executor.submit(self.agent.replay)
        if loss is not None:
            self.last_loss = loss
        return loss

    def run(self, n_ticks, on_tick=None):
        for _ in range(int(n_ticks)):
            result = self.tick()
            if on_tick is not None:
                on_tick(self, result)
        self.sync()

    def sync(self):
        """Wait for an in-flight training step, if any."""
        if self._pending is not None:
            loss = self._pending.result()
            self._pending = None
            if loss is not None:
                self.last_loss = loss

    # ---------- external controls ----------
    def reset(self):
        self.ctx.episode += 1
        self.ctx.total_reward = 0.0
        self.state, _ = self.env.reset()

    def set_target(self, x, y):
        self.env.set_target(x, y)
        self.state = self.env.state_vector()

    def set_training(self, enabled):
        self.ctx.training = bool(enabled)

    def save(self, path):
        self.sync()
        return self.agent.save(path)

    def load(self, path):
        self.sync()
        if not self.agent.load(path):
            return False
        self.ctx.epsilon = self.post_load_epsilon
        self.reset()
        return True

    def save_name(self):
        return f"rl-robot-model-episode-{self.ctx.episode}.pt"

    def status(self):
        return f"Epsilon: {self.ctx.epsilon:.3f}"

    def frame(self):
        return self.env.frame()

    def close(self):
        self.sync()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.env.close()


def make_simulation(cfg_module, env=None, seed=None, async_training=False, device="cpu"):
    """Wire env, context and agent from the constants in `config.py`."""
    if env is None:
        env = make_env_from_config(cfg_module)
    ctx = SimulationContext(epsilon=getattr(cfg_module, "EPSILON_START", 1.0))
    agent = DQNAgent(
        state_dim=env.state_dim,
        n_actions=env.action_space.n,
        ctx=ctx,
        hidden=getattr(cfg_module, "HIDDEN_UNITS", 24),
        lr=cfg_module.LR,
        gamma=cfg_module.GAMMA,
        memory_size=cfg_module.MEMORY_SIZE,
        batch_size=cfg_module.BATCH_SIZE,
        epsilon_decay=cfg_module.EPSILON_DECAY,
        min_epsilon=cfg_module.MIN_EPSILON,
        seed=seed,
        device=device,
    )
    return Simulation(env, agent, ctx, async_training=async_training,
                      post_load_epsilon=getattr(cfg_module, "POST_LOAD_EPSILON", 0.1),
                      seed=seed)
