"""
Domain Cache Service

Business-level caching on top of the store: what gets cached for a user,
a plant, a search, and which key-spaces a mutation must invalidate.
Route handlers of the wider API call these instead of assembling keys.

Also maps the operator cache-type presets (user, search, analytics,
community, weather, plants) to the patterns DELETE /cache/type/{type}
clears.

Author: System Architect
Date: 2025-12-12
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from agrotrack_cache.core.config.constants import CacheType
from agrotrack_cache.core.exceptions import InvalidInputError
from agrotrack_cache.core.logging.logger import get_logger
from agrotrack_cache.infrastructure.cache.helper import delete_patterns
from agrotrack_cache.infrastructure.cache.keys import CacheKeys
from agrotrack_cache.infrastructure.cache.store import CacheStore

logger = get_logger(__name__)

USER_TTL = 3600
PLANT_TTL = 1800
SEARCH_TTL = 600
SUGGESTIONS_TTL = 3600
ANALYTICS_TTL = 1800
COMMUNITY_TTL = 300
WEATHER_TTL = 1800
FORECAST_TTL = 3600
SESSION_TTL = 86400
NOTIFICATIONS_TTL = 600


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def patterns_for_type(cache_type: CacheType | str, user_id: str | None = None) -> list[str]:
    """
    Key patterns cleared by an operator cache-type preset.

    Args:
        cache_type: Preset name
        user_id: Narrows user-scoped presets; required for "user"

    Returns:
        Glob patterns to delete

    Raises:
        InvalidInputError: Unknown type, or "user" without user_id
    """
    try:
        cache_type = CacheType(cache_type)
    except ValueError:
        raise InvalidInputError(
            f"Invalid cache type: {cache_type}",
            details={"valid_types": [t.value for t in CacheType]},
        )

    if cache_type is CacheType.USER:
        if not user_id:
            raise InvalidInputError("User ID is required for user cache clearing")
        return [f"user:{user_id}*", f"analytics:user:{user_id}*", f"notifications:{user_id}*"]
    if cache_type is CacheType.SEARCH:
        return ["search:*"]
    if cache_type is CacheType.ANALYTICS:
        return [f"analytics:user:{user_id}*"] if user_id else ["analytics:*"]
    if cache_type is CacheType.COMMUNITY:
        return ["community:*"]
    if cache_type is CacheType.WEATHER:
        return ["weather:*"]
    # PLANTS
    return [f"user:plants:{user_id}*", "plant:*"] if user_id else ["plant:*"]


class CacheService:
    """
    Domain caching helpers.

    Usage:
        service = CacheService(container.store)
        await service.cache_plant("42", plant)
        ...
        await service.invalidate_plant("42", user_id="7")
    """

    def __init__(self, store: CacheStore):
        self._store = store

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def cache_user(self, user_id: str, user: dict[str, Any], ttl: int = USER_TTL) -> None:
        """Cache the full user record and its public profile."""
        profile = {field: user.get(field) for field in ("id", "username", "email", "avatar", "created_at")}
        await asyncio.gather(
            self._store.set(CacheKeys.user(user_id), user, ttl),
            self._store.set(CacheKeys.user_profile(user_id), profile, ttl),
        )

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        return await self._store.get(CacheKeys.user(user_id))

    async def invalidate_user(self, user_id: str) -> None:
        await self._store.delete(
            CacheKeys.user(user_id),
            CacheKeys.user_profile(user_id),
            CacheKeys.user_preferences(user_id),
            CacheKeys.dashboard_analytics(user_id),
        )
        await delete_patterns(
            self._store,
            [f"user:plants:{user_id}*", f"user:sessions:{user_id}*", f"analytics:user:{user_id}*"],
        )

    # -------------------------------------------------------------------------
    # Plants
    # -------------------------------------------------------------------------

    async def cache_plant(self, plant_id: str, plant: dict[str, Any], ttl: int = PLANT_TTL) -> None:
        await self._store.set(CacheKeys.plant(plant_id), plant, ttl)

    async def get_plant(self, plant_id: str) -> dict[str, Any] | None:
        return await self._store.get(CacheKeys.plant(plant_id))

    async def invalidate_plant(self, plant_id: str, user_id: str | None = None) -> None:
        await self._store.delete(
            CacheKeys.plant(plant_id),
            CacheKeys.plant_details(plant_id),
            CacheKeys.plant_reminders(plant_id),
        )
        patterns = [f"plant:carelog:{plant_id}*", f"plant:analytics:{plant_id}*"]
        if user_id:
            patterns.append(f"user:plants:{user_id}*")
        await delete_patterns(self._store, patterns)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def cache_search_results(
        self,
        query: str,
        results: list[Any],
        filters: dict[str, Any] | None = None,
        ttl: int = SEARCH_TTL,
    ) -> None:
        await self._store.set(
            CacheKeys.search(query, filters),
            {"query": query, "results": results, "filters": filters, "timestamp": _now(), "count": len(results)},
            ttl,
        )

    async def get_search(self, query: str, filters: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return await self._store.get(CacheKeys.search(query, filters))

    async def cache_search_suggestions(self, query: str, suggestions: list[str], ttl: int = SUGGESTIONS_TTL) -> None:
        await self._store.set(CacheKeys.search_suggestions(query), suggestions, ttl)

    async def invalidate_search(self, patterns: list[str] | None = None) -> int:
        return await delete_patterns(self._store, patterns or ["search:*"])

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    async def cache_analytics(self, key: str, data: Any, ttl: int = ANALYTICS_TTL) -> None:
        await self._store.set(key, {"data": data, "generated_at": _now(), "ttl": ttl}, ttl)

    async def get_analytics(self, key: str) -> Any | None:
        cached = await self._store.get(key)
        return cached["data"] if cached else None

    async def invalidate_analytics(self, user_id: str | None = None) -> None:
        if user_id:
            await delete_patterns(self._store, [f"analytics:user:{user_id}*"])
            await self._store.delete(CacheKeys.dashboard_analytics(user_id))
        else:
            await delete_patterns(self._store, ["analytics:*"])

    # -------------------------------------------------------------------------
    # Community
    # -------------------------------------------------------------------------

    async def cache_community_posts(
        self,
        page: int,
        posts: list[Any],
        filters: dict[str, Any] | None = None,
        ttl: int = COMMUNITY_TTL,
    ) -> None:
        await self._store.set(
            CacheKeys.community_posts(page, filters),
            {"posts": posts, "page": page, "filters": filters, "timestamp": _now()},
            ttl,
        )

    async def get_community_posts(self, page: int, filters: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return await self._store.get(CacheKeys.community_posts(page, filters))

    async def invalidate_community(self, user_id: str | None = None) -> None:
        patterns = ["community:posts:*"]
        if user_id:
            patterns.append(f"community:posts:user:{user_id}*")
        await delete_patterns(self._store, patterns)

    # -------------------------------------------------------------------------
    # Weather
    # -------------------------------------------------------------------------

    async def cache_weather(self, location: str, weather: Any, ttl: int = WEATHER_TTL) -> None:
        await self._store.set(
            CacheKeys.weather(location), {"location": location, "data": weather, "cached_at": _now()}, ttl
        )

    async def get_weather(self, location: str) -> Any | None:
        cached = await self._store.get(CacheKeys.weather(location))
        return cached["data"] if cached else None

    async def cache_weather_forecast(self, location: str, days: int, forecast: Any, ttl: int = FORECAST_TTL) -> None:
        await self._store.set(
            CacheKeys.weather_forecast(location, days),
            {"location": location, "days": days, "data": forecast, "cached_at": _now()},
            ttl,
        )

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def cache_session(self, session_id: str, session: dict[str, Any], ttl: int = SESSION_TTL) -> None:
        """Cache a session and index it under its user."""
        await self._store.set(CacheKeys.user_session(session_id), session, ttl)
        if session.get("user_id"):
            await self._store.sadd(CacheKeys.user_sessions(session["user_id"]), session_id)

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        return await self._store.get(CacheKeys.user_session(session_id))

    async def invalidate_session(self, session_id: str, user_id: str | None = None) -> None:
        await self._store.delete(CacheKeys.user_session(session_id))
        if not user_id:
            return

        index_key = CacheKeys.user_sessions(user_id)
        remaining = await self._store.smembers(index_key) - {session_id}
        await self._store.delete(index_key)
        if remaining:
            await self._store.sadd(index_key, *remaining)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def cache_notifications(
        self,
        user_id: str,
        notifications: list[Any],
        unread_only: bool = False,
        ttl: int = NOTIFICATIONS_TTL,
    ) -> None:
        await self._store.set(
            CacheKeys.user_notifications(user_id, unread_only),
            {"notifications": notifications, "unread_only": unread_only, "cached_at": _now()},
            ttl,
        )

    async def invalidate_notifications(self, user_id: str) -> None:
        await self._store.delete(
            CacheKeys.user_notifications(user_id),
            CacheKeys.user_notifications(user_id, unread_only=True),
        )
