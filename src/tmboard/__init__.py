"""tmboard: dependency and state engine for a multi-project agent task board."""

from tmboard.config import VERSION

__version__ = VERSION
