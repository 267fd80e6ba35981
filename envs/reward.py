# -*- coding: utf-8 -*-
import math


def compute_reward(prev_dist, new_dist, cos_bearing, speed, collision, rw):
    """
    Shaped reward for one tick.

    Returns (reward, terminated, reached_goal). Collision replaces the
    shaped reward with rw["COLLISION_PENALTY"]; otherwise reaching the goal
    radius adds rw["GOAL_REWARD"] on top of it. The two never both fire.
    """
    for name, value in (("prev_dist", prev_dist), ("new_dist", new_dist),
                        ("cos_bearing", cos_bearing), ("speed", speed)):
        if not math.isfinite(value):
            raise FloatingPointError(f"non-finite {name} in reward: {value}")

    r = 0.0
    # 1) progress toward the target
    r += (prev_dist - new_dist) * rw["PROGRESS_SCALE"]

    # 2) time cost
    r -= rw["STEP_PENALTY"]

    # 3) facing the target, sign follows the direction of travel
    if speed > 0:
        r += rw["ORIENTATION_SCALE"] * cos_bearing
    elif speed < 0:
        r -= rw["ORIENTATION_SCALE"] * cos_bearing

    # 4) collision
    if collision:
        return float(rw["COLLISION_PENALTY"]), True, False

    # 5) goal
    if new_dist < rw["GOAL_RADIUS"]:
        return float(r + rw["GOAL_REWARD"]), True, True

    return float(r), False, False
