"""
config.py — Paths, run defaults and logging setup shared by the pipeline commands.

Everything here is a default. The simulation engine and summary calculator take
the trial count and majority threshold as explicit arguments; the commands
expose them as --trials and --majority-threshold.
"""

import logging
import os
from pathlib import Path

# ── Paths ────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get('SEAT_FORECAST_DATA_DIR', BASE_DIR / 'out'))

SNAPSHOT_FILE = 'constituencies.json'
AGGREGATE_FILE = 'election-2024.json'
HTML_FILE = 'index.html'

# ── Simulation ───────────────────────────────────────────────────────
NUMBER_OF_SIMULATIONS = 100_000
TOTAL_SEATS = 650
# Strictly more than this many seats is a working majority
MAJORITY_THRESHOLD = 325

# Below this many trials the 5th/95th order statistics are too coarse to mean much
MIN_RELIABLE_TRIALS = 20

# ── Manifold API ─────────────────────────────────────────────────────
MANIFOLD_API_BASE = 'https://api.manifold.markets/v0'
MANIFOLD_HOME = 'https://manifold.markets/home'
# Group holding one "Which party will win in X?" market per constituency
MANIFOLD_GROUP_ID = 'f763184a-51f4-4de2-a9df-d290134e6298'
MARKETS_PAGE_LIMIT = 1000
MAX_MARKETS = 5000

REQUEST_TIMEOUT = 30
REQUEST_DELAY = 0.1
MAX_RETRIES = 3
USER_AGENT = 'seat-forecast/1.0 (UK general election dashboard)'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'


def setup_logging(verbose=False):
    """Configure root logging for a command-line run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
