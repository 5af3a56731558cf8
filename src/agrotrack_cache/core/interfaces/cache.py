"""
Distributed Cache Backend Protocol

This module defines the capability the cache store expects from its
distributed tier. The store never talks to a concrete product; it is handed
anything that satisfies this protocol.

Architectural Decision: Protocol-based abstraction
- RedisClient is the production implementation
- Tests plug in in-memory and always-failing doubles
- Type-safe interface with runtime checking

Contract shared by every implementation:
- Values are opaque strings (the store does its own serialization)
- Keys passed in and returned are logical keys; any namespacing is the
  implementation's business
- Failures are raised as CacheConnectionError (unreachable / timeout) or
  CacheKeyError (command failed), never as vendor exceptions

Author: System Architect
Date: 2025-12-08
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DistributedBackend(Protocol):
    """Operations the dual-backend store layers its fallback over."""

    async def connect(self) -> None:
        """
        Establish connection to the backend.

        Raises:
            CacheConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close connection to the backend."""
        ...

    async def ping(self) -> bool:
        """Liveness check. Returns False instead of raising."""
        ...

    async def get(self, key: str) -> str | None:
        """Get a value, None when missing."""
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set a value with an optional TTL in seconds."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        ...

    async def keys(self, pattern: str) -> list[str]:
        """List keys matching a glob pattern."""
        ...

    async def sadd(self, key: str, *members: str) -> int:
        """Add members to a set, returning how many were new."""
        ...

    async def smembers(self, key: str) -> set[str]:
        """Get all members of a set (empty when missing)."""
        ...

    async def exists(self, *keys: str) -> int:
        """Count how many of the keys exist."""
        ...

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds, -1 if no TTL, -2 if key doesn't exist."""
        ...

    async def expire(self, key: str, ttl: int) -> bool:
        """Set a TTL on an existing key."""
        ...

    async def flushdb(self) -> bool:
        """Remove every key in the backend's namespace."""
        ...

    async def info(self) -> dict[str, Any]:
        """Backend diagnostic info (e.g. used_memory_human)."""
        ...
