"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``playex`` import so the global
settings object is built for the testing environment.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
