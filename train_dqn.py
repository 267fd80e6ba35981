# -*- coding: utf-8 -*-
import os
import argparse
import logging
from time import time

import numpy as np
import torch
from matplotlib.figure import Figure

import config as cfg
from simulation import make_simulation


def plot_returns(returns, window=20, save_path=None):
    """Episode returns with a moving average."""
    returns = np.asarray(returns, dtype=np.float64)
    # standalone figure: leaves the pyplot backend alone for --render
    fig = Figure(figsize=(8, 4))
    ax = fig.add_subplot(111)
    ax.plot(returns, lw=1, alpha=0.4, label="Return")
    if len(returns) >= window:
        avg = np.convolve(returns, np.ones(window) / window, mode="valid")
        ax.plot(np.arange(window - 1, len(returns)), avg, lw=2, label=f"Avg {window}")
    ax.set_xlabel("Episode")
    ax.set_ylabel("Return")
    ax.set_title("DQN training")
    ax.legend()
    ax.grid(True)
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150)
    return fig


def main(args):
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] %(message)s")
    logdir = args.logdir
    os.makedirs(logdir, exist_ok=True)

    device = "cuda" if torch.cuda.is_available() and not args.cpu else "cpu"
    print(f"[Device] Using: {device}")

    sim = make_simulation(cfg, seed=args.seed, async_training=args.async_train, device=device)
    if args.load:
        if not sim.load(args.load):
            raise SystemExit(f"could not load model from {args.load}")
        print(f"[DQN] resumed from {args.load}, {sim.status()}")
    sim.set_training(not args.no_train)

    returns = []
    t0 = time()

    def on_tick(sim, res):
        if args.render:
            sim.env.render(status=f"Episode {sim.ctx.episode} | {sim.status()}")
        if not res.terminated:
            return
        returns.append(res.episode_reward)
        if len(returns) % args.log_every == 0:
            recent = returns[-args.log_every:]
            loss = f"{sim.last_loss:.4f}" if sim.last_loss is not None else "-"
            print(f"[DQN] tick={sim.ctx.tick} episode={sim.ctx.episode} "
                  f"avg_return={np.mean(recent):.2f} loss={loss} eps={sim.ctx.epsilon:.3f} "
                  f"goals={sim.ctx.goals} collisions={sim.ctx.collisions} elapsed={time()-t0:.1f}s")

    try:
        sim.run(args.ticks, on_tick=on_tick)
    except KeyboardInterrupt:
        print("\n[DQN] interrupted")
    finally:
        path = sim.save(os.path.join(logdir, sim.save_name()))
        sim.close()
        if returns:
            plot_returns(returns, save_path=os.path.join(logdir, "returns.png"))

    print(f"✅ Training done. Model saved to: {path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--logdir", type=str, default="logs_dqn")
    parser.add_argument("--ticks", type=int, default=cfg.TOTAL_TICKS)
    parser.add_argument("--seed", type=int, default=cfg.N_SEED)
    parser.add_argument("--load", type=str, default=None)
    parser.add_argument("--no-train", action="store_true")
    parser.add_argument("--async-train", action="store_true")
    parser.add_argument("--render", action="store_true")
    parser.add_argument("--log-every", type=int, default=cfg.LOG_EVERY)
    parser.add_argument("--cpu", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    main(args)
