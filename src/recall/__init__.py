"""recall: SM-2 spaced-repetition scheduling and review sessions."""

from .consts import VERSION

__version__ = VERSION
