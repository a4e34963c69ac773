"""
SM-2 scheduler constants.

This module contains static scheduling parameters for the Anki-style
SM-2 variant used by vocabcore.
No runtime configuration or path defaults - pure constants only.
"""
from datetime import timedelta
from typing import Tuple

MINUTE = timedelta(minutes=1)
DAY = timedelta(days=1)

# Ease never drops below this floor (Anki's 130%).
MIN_EASE: float = 1.3

# On a lapse the stored interval is halved before the card returns to Review.
LAPSE_INTERVAL_FACTOR: float = 0.5

# The study day boundary is anchored to one timezone for every learner.
REFERENCE_TIMEZONE: str = "Europe/Brussels"

# Default scheduler options, mirroring Anki's deck defaults.
# One learning step means two Good presses to graduate a new card;
# use (1.0, 10.0) to require three.
DEFAULT_MAX_NEW_CARDS_PER_DAY: int = 20
DEFAULT_MAX_REVIEWS_PER_DAY: int = 200
DEFAULT_LEARNING_STEPS: Tuple[float, ...] = (10.0,)  # minutes
DEFAULT_RELEARNING_STEPS: Tuple[float, ...] = (10.0,)  # minutes
DEFAULT_GRADUATING_INTERVAL: int = 1  # days
DEFAULT_EASY_INTERVAL: int = 4  # days
DEFAULT_STARTING_EASE: float = 2.5
DEFAULT_HARD_INTERVAL_MULTIPLIER: float = 1.2
DEFAULT_EASY_BONUS: float = 1.3
DEFAULT_INTERVAL_MODIFIER: float = 1.0
DEFAULT_LAPSE_EASE_PENALTY: float = 0.2
DEFAULT_HARD_EASE_PENALTY: float = 0.15
DEFAULT_EASY_EASE_BONUS: float = 0.15
