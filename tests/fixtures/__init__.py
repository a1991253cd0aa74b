"""Shared pytest fixtures for API and sync client tests."""

from .client import *  # noqa: F401,F403
from .core import *  # noqa: F401,F403
