# dqn.py
# Q-learning with a small MLP value function and uniform experience replay.
# One network serves both the prediction and the bootstrap (no target copy).

import os
import logging
import threading
from typing import NamedTuple

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim

log = logging.getLogger(__name__)


# =========================
# Utils
# =========================
def glorot_init(m):
    if isinstance(m, nn.Linear):
        nn.init.xavier_uniform_(m.weight)
        nn.init.zeros_(m.bias)


# =========================
# Model
# =========================
class QNetwork(nn.Module):
    """state (N+2) -> 24 -> 24 -> one unbounded score per action"""
    def __init__(self, state_dim, n_actions, hidden=24):
        super().__init__()
        self.state_dim = int(state_dim)
        self.n_actions = int(n_actions)
        self.hidden = int(hidden)
        self.body = nn.Sequential(
            nn.Linear(self.state_dim, self.hidden), nn.ReLU(),
            nn.Linear(self.hidden, self.hidden), nn.ReLU(),
            nn.Linear(self.hidden, self.n_actions),
        )
        self.apply(glorot_init)

    def forward(self, s):
        return self.body(s)

    def arch(self):
        return {"state_dim": self.state_dim, "n_actions": self.n_actions, "hidden": self.hidden}


# =========================
# Replay (fixed-capacity ring)
# =========================
class Transition(NamedTuple):
    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    done: bool


class ReplayMemory:
    """
    Preallocated ring buffer. The write cursor wraps, so once full each
    store overwrites the oldest entry. Temporal index 0 is always the oldest.
    """
    def __init__(self, capacity, state_dim, rng=None):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self.state_dim = int(state_dim)
        self.rng = rng if rng is not None else np.random.default_rng()

        self.s = np.zeros((self.capacity, self.state_dim), dtype=np.float32)
        self.a = np.zeros(self.capacity, dtype=np.int64)
        self.r = np.zeros(self.capacity, dtype=np.float32)
        self.s2 = np.zeros((self.capacity, self.state_dim), dtype=np.float32)
        self.d = np.zeros(self.capacity, dtype=np.float32)

        self._pos = 0
        self._size = 0
        self._lock = threading.Lock()

    def __len__(self):
        return self._size

    def store(self, tr: Transition):
        with self._lock:
            i = self._pos
            self.s[i] = tr.state
            self.a[i] = tr.action
            self.r[i] = tr.reward
            self.s2[i] = tr.next_state
            self.d[i] = float(tr.done)
            self._pos = (i + 1) % self.capacity
            self._size = min(self._size + 1, self.capacity)

    def _slot(self, k):
        oldest = self._pos if self._size == self.capacity else 0
        return (oldest + k) % self.capacity

    def __getitem__(self, k):
        if k < 0:
            k += self._size
        if not 0 <= k < self._size:
            raise IndexError(k)
        with self._lock:
            i = self._slot(k)
            return Transition(self.s[i].copy(), int(self.a[i]), float(self.r[i]),
                              self.s2[i].copy(), bool(self.d[i]))

    def __iter__(self):
        for k in range(self._size):
            yield self[k]

    def sample(self, batch_size):
        """Uniform, with replacement. Returns (S, A, R, S2, D) arrays."""
        with self._lock:
            if self._size < batch_size:
                raise ValueError(f"need {batch_size} transitions, have {self._size}")
            # filled slots are exactly 0 .. size-1 whether or not the ring wrapped
            idx = self.rng.integers(0, self._size, size=batch_size)
            return self.s[idx], self.a[idx], self.r[idx], self.s2[idx], self.d[idx]

    def clear(self):
        with self._lock:
            self._pos = 0
            self._size = 0


# =========================
# Agent
# =========================
class DQNAgent:
    """
    Epsilon-greedy controller around a QNetwork.

    Exploration rate and the training switch live on `ctx` (see
    simulation.SimulationContext), which the agent reads on every call and
    whose epsilon it decays after each completed training step.

    Network reads (forward passes) and writes (gradient steps, load) all
    take the same lock, so a step never observes half-updated parameters.
    `version` counts parameter updates.
    """
    def __init__(self, state_dim, n_actions, ctx,
                 hidden=24, lr=1e-3, gamma=0.95,
                 memory_size=2000, batch_size=64,
                 epsilon_decay=0.995, min_epsilon=0.01,
                 seed=None, device="cpu"):
        self.state_dim = int(state_dim)
        self.n_actions = int(n_actions)
        self.ctx = ctx
        self.lr = lr
        self.gamma = gamma
        self.batch_size = int(batch_size)
        self.epsilon_decay = epsilon_decay
        self.min_epsilon = min_epsilon
        self.device = device

        # separate streams: replay may sample on a worker thread while act() draws
        act_seed, memory_seed = np.random.SeedSequence(seed).spawn(2)
        self.rng = np.random.default_rng(act_seed)
        if seed is not None:
            torch.manual_seed(seed)

        self.net = QNetwork(self.state_dim, self.n_actions, hidden).to(device)
        self.opt = optim.Adam(self.net.parameters(), lr=lr)
        self.mse = nn.MSELoss()
        self.memory = ReplayMemory(memory_size, self.state_dim, rng=np.random.default_rng(memory_seed))

        self.version = 0
        self._lock = threading.RLock()

    # ---------- policy ----------
    @torch.no_grad()
    def q_values(self, state):
        s = torch.as_tensor(np.asarray(state, dtype=np.float32), device=self.device).unsqueeze(0)
        with self._lock:
            q = self.net(s)
        return q.squeeze(0).cpu().numpy()

    def act(self, state):
        # training flag first: inference never touches the generator
        if self.ctx.training and self.rng.random() < self.ctx.epsilon:
            return int(self.rng.integers(self.n_actions))
        # np.argmax keeps the first index among equal maxima
        return int(np.argmax(self.q_values(state)))

    # ---------- learning ----------
    def remember(self, state, action, reward, next_state, done):
        tr = Transition(np.asarray(state, dtype=np.float32).copy(), int(action), float(reward),
                        np.asarray(next_state, dtype=np.float32).copy(), bool(done))
        self.memory.store(tr)
        return tr

    def replay(self):
        """
        One gradient step on a sampled batch. Returns the loss, or None when
        memory does not yet hold a full batch.
        """
        if len(self.memory) < self.batch_size:
            return None

        S, A, R, S2, D = self.memory.sample(self.batch_size)
        s = torch.as_tensor(S, device=self.device)
        a = torch.as_tensor(A, device=self.device)
        r = torch.as_tensor(R, device=self.device)
        s2 = torch.as_tensor(S2, device=self.device)
        d = torch.as_tensor(D, device=self.device)

        with self._lock:
            with torch.no_grad():
                q = self.net(s)
                q_next = self.net(s2)
                y = q.clone()
                # terminal rows keep the bare reward
                y[torch.arange(self.batch_size), a] = r + (1.0 - d) * self.gamma * q_next.max(dim=1).values

            pred = self.net(s)
            loss = self.mse(pred, y)
            if not torch.isfinite(loss):
                raise FloatingPointError(f"non-finite TD loss at version {self.version}")

            self.opt.zero_grad(set_to_none=True)
            loss.backward()
            self.opt.step()
            self.version += 1

            if self.ctx.epsilon > self.min_epsilon:
                self.ctx.epsilon = max(self.min_epsilon, self.ctx.epsilon * self.epsilon_decay)

        return float(loss.item())

    # ---------- persistence ----------
    def save(self, path):
        with self._lock:
            payload = dict(self.net.arch())
            payload["state_dict"] = {k: v.detach().cpu().clone() for k, v in self.net.state_dict().items()}
        dirname = os.path.dirname(path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        torch.save(payload, path)
        log.info("saved Q-network to %s", path)
        return path

    def load(self, path):
        """
        Replace the live network with the one stored at `path`. Returns
        False, leaving the current network in place, if the file cannot be
        read or does not match this agent's input/output sizes.
        """
        try:
            payload = torch.load(path, map_location=self.device, weights_only=True)
            state_dim = int(payload["state_dim"])
            n_actions = int(payload["n_actions"])
            if (state_dim, n_actions) != (self.state_dim, self.n_actions):
                raise ValueError(
                    f"model maps {state_dim} -> {n_actions}, expected {self.state_dim} -> {self.n_actions}")
            net = QNetwork(state_dim, n_actions, int(payload["hidden"])).to(self.device)
            net.load_state_dict(payload["state_dict"])
        except Exception as exc:
            # torch raises a wide range of types for corrupt or foreign files
            log.warning("could not load model from %s: %s", path, exc)
            return False

        opt = optim.Adam(net.parameters(), lr=self.lr)
        with self._lock:
            self.net, self.opt = net, opt
            self.version += 1
        log.info("loaded Q-network from %s", path)
        return True
