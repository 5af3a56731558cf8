"""
Integration tests.

These run against a real Redis (REDIS_HOST/REDIS_PORT from the environment)
and are skipped when none is reachable. Keys are written under a dedicated
prefix and removed afterwards.
"""
