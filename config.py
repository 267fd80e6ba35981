# -*- coding: utf-8 -*-
import math

N_SEED = 42

# Arena (canvas units)
ARENA_WIDTH  = 800.0
ARENA_HEIGHT = 600.0
TARGET_MARGIN = 50.0

# Robot
ROBOT_RADIUS  = 20.0
INITIAL_HEADING = -math.pi / 2

# Actions: (forward speed, turn rate) per tick
ACTION_TABLE = (
    (3.0,  0.0),    # forward
    (1.5, -0.1),    # forward-left
    (1.5,  0.1),    # forward-right
    (-2.0, 0.0),    # reverse
)

# Range sensors
SENSOR_COUNT      = 5
SENSOR_LENGTH     = 120.0
SENSOR_FOV        = math.pi / 1.5
NEAR_FIELD        = 0.1          # normalized reading treated as wall contact

# Episode
GOAL_RADIUS       = 30.0

# Reward weights
COLLISION_PENALTY = -10.0
GOAL_REWARD       = +10.0
PROGRESS_SCALE    = 0.1
ORIENTATION_SCALE = 0.02
STEP_PENALTY      = 0.01

# Learning
HIDDEN_UNITS      = 24
MEMORY_SIZE       = 2000
BATCH_SIZE        = 64
GAMMA             = 0.95
LR                = 1e-3
EPSILON_START     = 1.0
EPSILON_DECAY     = 0.995
MIN_EPSILON       = 0.01
POST_LOAD_EPSILON = 0.1

# Runs
TOTAL_TICKS       = 50_000
LOG_EVERY         = 10           # episodes
EVAL_EPISODES     = 5
EVAL_MAX_STEPS    = 2_000
