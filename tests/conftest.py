import pytest

import config as cfg
from envs.target_seek_env import make_env_from_config
from dqn import DQNAgent
from simulation import SimulationContext


@pytest.fixture
def env():
    e = make_env_from_config(cfg)
    yield e
    e.close()


@pytest.fixture
def ctx():
    return SimulationContext()


@pytest.fixture
def small_agent(ctx):
    """Agent with a tiny batch so replay runs after a handful of stores."""
    return DQNAgent(state_dim=cfg.SENSOR_COUNT + 2, n_actions=len(cfg.ACTION_TABLE), ctx=ctx,
                    memory_size=50, batch_size=4, seed=0)
