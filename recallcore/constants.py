"""
FSRS algorithm constants.

Static FSRS (Free Spaced Repetition Scheduler) parameters and scheduling bounds.
No runtime configuration here - see recallcore.config for that.
"""
from datetime import timedelta
from typing import Tuple

# Default FSRS-6 parameters (weights 'w')
# Sourced from: py-fsrs library (fsrs.scheduler.DEFAULT_PARAMETERS)
# w[0]..w[3] are the initial stabilities for Again/Hard/Good/Easy,
# w[4]..w[7] drive difficulty, w[8]..w[16] the stability updates,
# w[17]..w[19] short-term (same-day) stability and w[20] the forgetting curve decay.
DEFAULT_PARAMETERS: Tuple[float, ...] = (
    0.2172,  # w[0]
    1.1771,  # w[1]
    3.2602,  # w[2]
    16.1507, # w[3]
    7.0114,  # w[4]
    0.57,    # w[5]
    2.0966,  # w[6]
    0.0069,  # w[7]
    1.5261,  # w[8]
    0.112,   # w[9]
    1.0178,  # w[10]
    1.849,   # w[11]
    0.1133,  # w[12]
    0.3127,  # w[13]
    2.2934,  # w[14]
    0.2191,  # w[15]
    3.0004,  # w[16]
    0.7536,  # w[17]
    0.3332,  # w[18]
    0.1437,  # w[19]
    0.2,     # w[20]
)

PARAMETER_COUNT: int = len(DEFAULT_PARAMETERS)

# Default desired retention rate if not specified elsewhere.
DEFAULT_DESIRED_RETENTION: float = 0.9

DEFAULT_LEARNING_STEPS: Tuple[timedelta, ...] = (
    timedelta(minutes=1),
    timedelta(minutes=10),
)
DEFAULT_RELEARNING_STEPS: Tuple[timedelta, ...] = (timedelta(minutes=10),)

# Longest interval the scheduler will hand out, in days.
DEFAULT_MAX_INTERVAL: int = 36500

# Bounds of the FSRS difficulty scale.
DIFFICULTY_MIN: float = 1.0
DIFFICULTY_MAX: float = 10.0

# Cards per review session unless the caller asks otherwise.
DEFAULT_SESSION_LIMIT: int = 50
