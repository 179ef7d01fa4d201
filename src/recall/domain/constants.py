"""Centralized constants for the recall scheduler.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 5.0  # upper bound accepted by card validation only
LAPSE_EASE_PENALTY = 0.2
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
HARD_LAPSE_INTERVAL_DAYS = 1
AGAIN_LAPSE_INTERVAL_DAYS = 0
QUALITY_OFFSET = 2  # maps the 0-3 quality scale onto SM-2's 2-5 responses
SM2_MAX_RESPONSE = 5

# ---------- Queues ----------
DEFAULT_SESSION_SIZE = 20
DEFAULT_DUE_LIMIT = 100
DEFAULT_HISTORY_LIMIT = 100

# ---------- Card statistics ----------
MASTERY_REPETITIONS = 10
MASTERY_EASE_FACTOR = 2.5
NEUTRAL_DIFFICULTY = 50

# ---------- Card validation ----------
MIN_QUESTION_LENGTH = 3
MAX_QUESTION_LENGTH = 500
MIN_ANSWER_LENGTH = 1
MAX_ANSWER_LENGTH = 2000
MAX_NOTES_LENGTH = 5000
MAX_TAGS = 10
