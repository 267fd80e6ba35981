import sys
from pathlib import Path

# flat layout: make config, dqn, simulation and envs importable without install
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
