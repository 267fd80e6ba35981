# -*- coding: utf-8 -*-
import time
import argparse
import logging

import numpy as np

import config as cfg
from simulation import make_simulation


def rollout(model_path, episodes=5, max_steps=cfg.EVAL_MAX_STEPS, render=True, sleep=0.0):
    if max_steps < 1:
        raise ValueError(f"max_steps must be >= 1, got {max_steps}")
    sim = make_simulation(cfg, seed=cfg.N_SEED + 100)
    if not sim.load(model_path):
        raise SystemExit(f"could not load model from {model_path}")
    sim.set_training(False)

    successes = 0
    rewards = []
    for ep in range(episodes):
        ep_reward = 0.0
        res = None
        for t in range(max_steps):
            res = sim.tick()
            ep_reward += res.reward
            if render:
                sim.env.render(status=f"Episode {ep+1} | reward {ep_reward:.1f}")
            if sleep > 0:
                time.sleep(sleep)
            if res.terminated:
                break
        else:
            # no terminal within max_steps: start the next episode by hand
            sim.reset()
        rewards.append(ep_reward)
        if res is not None and res.is_success:
            successes += 1
        print(f"[EP {ep+1}] reward={ep_reward:.2f} success={res.is_success} steps={t+1}")

    if rewards:
        print(f"Reward: {np.mean(rewards):.2f} ± {np.std(rewards):.2f}")
    print(f"Success rate: {successes}/{episodes}")
    sim.close()
    return successes


def positive_int(text):
    n = int(text)
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text}")
    return n


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    p = argparse.ArgumentParser()
    p.add_argument("--model", type=str, required=True)
    p.add_argument("--episodes", type=positive_int, default=cfg.EVAL_EPISODES)
    p.add_argument("--max-steps", type=positive_int, default=cfg.EVAL_MAX_STEPS)
    p.add_argument("--no-render", action="store_true")
    p.add_argument("--sleep", type=float, default=0.0)
    args = p.parse_args()

    rollout(args.model, episodes=args.episodes, max_steps=args.max_steps,
            render=not args.no_render, sleep=args.sleep)
