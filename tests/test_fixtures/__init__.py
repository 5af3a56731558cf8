"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, FailingBackend, FakeClock, InMemoryBackend

__all__ = ["CacheTestFactory", "FailingBackend", "FakeClock", "InMemoryBackend"]
