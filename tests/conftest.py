"""Test configuration for the Hull client."""

from tests.fixtures import *  # noqa: F401,F403
