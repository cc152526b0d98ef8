"""Shared pytest fixtures for client tests."""

from .core import *  # noqa: F401,F403
from .transport import *  # noqa: F401,F403
