"""
Cache Key Builders

Single source of truth for the key-space. The operator presets
(DELETE /cache/type/{type}), the monitor's known patterns and CacheService
all assume these shapes, so keys are never assembled by hand elsewhere.

Key-space:
    user:<id>, user:profile:<id>, user:plants:<id>[:page:<n>]
    plant:<id>, plant:details:<id>, plant:carelog:<id>[:page:<n>]
    search:<md5>, search:suggestions:<query>, search:popular
    analytics:user:<id>:<period>, analytics:system:<period>
    community:posts:page:<n>:<md5>, community:posts:user:<id>[:page:<n>]
    weather:<location>, weather:forecast:<location>:<days>d
    notifications:<id>[:unread], ratelimit:..., session:..., upload:temp:...

Uses MD5 where free-form input (search query, filters) goes into a key:
collisions only cost a cache miss.

Author: System Architect
Date: 2025-12-12
"""

import hashlib
import re
from typing import Any

import orjson


def _digest(*parts: Any) -> str:
    data = "".join(parts)
    return hashlib.md5(data.encode()).hexdigest()


def _filters_text(filters: dict[str, Any] | None) -> str:
    if not filters:
        return ""
    return orjson.dumps(filters, option=orjson.OPT_SORT_KEYS).decode()


def _location_slug(location: str) -> str:
    return re.sub(r"\s+", "_", location.lower())


class CacheKeys:
    """Static key builders grouped by domain."""

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    @staticmethod
    def user(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"user:profile:{user_id}"

    @staticmethod
    def user_preferences(user_id: str) -> str:
        return f"user:preferences:{user_id}"

    @staticmethod
    def user_plants(user_id: str, page: int | None = None) -> str:
        return f"user:plants:{user_id}:page:{page}" if page else f"user:plants:{user_id}"

    # -------------------------------------------------------------------------
    # Plants
    # -------------------------------------------------------------------------

    @staticmethod
    def plant(plant_id: str) -> str:
        return f"plant:{plant_id}"

    @staticmethod
    def plant_details(plant_id: str) -> str:
        return f"plant:details:{plant_id}"

    @staticmethod
    def plant_care_log(plant_id: str, page: int | None = None) -> str:
        return f"plant:carelog:{plant_id}:page:{page}" if page else f"plant:carelog:{plant_id}"

    @staticmethod
    def plant_reminders(plant_id: str) -> str:
        return f"plant:reminders:{plant_id}"

    @staticmethod
    def plant_analytics(plant_id: str, period: str) -> str:
        return f"plant:analytics:{plant_id}:{period}"

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    @staticmethod
    def search(query: str, filters: dict[str, Any] | None = None) -> str:
        """Hashed so arbitrary query text and filter objects stay key-safe."""
        return f"search:{_digest(query, _filters_text(filters))}"

    @staticmethod
    def search_suggestions(query: str) -> str:
        return f"search:suggestions:{query.lower()}"

    @staticmethod
    def popular_searches() -> str:
        return "search:popular"

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    @staticmethod
    def user_analytics(user_id: str, period: str) -> str:
        return f"analytics:user:{user_id}:{period}"

    @staticmethod
    def system_analytics(period: str) -> str:
        return f"analytics:system:{period}"

    @staticmethod
    def dashboard_analytics(user_id: str) -> str:
        return f"analytics:dashboard:{user_id}"

    # -------------------------------------------------------------------------
    # Community
    # -------------------------------------------------------------------------

    @staticmethod
    def community_posts(page: int, filters: dict[str, Any] | None = None) -> str:
        return f"community:posts:page:{page}:{_digest(_filters_text(filters))}"

    @staticmethod
    def user_posts(user_id: str, page: int | None = None) -> str:
        return f"community:posts:user:{user_id}:page:{page}" if page else f"community:posts:user:{user_id}"

    @staticmethod
    def post_comments(post_id: str) -> str:
        return f"community:post:comments:{post_id}"

    # -------------------------------------------------------------------------
    # Weather
    # -------------------------------------------------------------------------

    @staticmethod
    def weather(location: str) -> str:
        return f"weather:{_location_slug(location)}"

    @staticmethod
    def weather_forecast(location: str, days: int) -> str:
        return f"weather:forecast:{_location_slug(location)}:{days}d"

    # -------------------------------------------------------------------------
    # Disease detection / experts
    # -------------------------------------------------------------------------

    @staticmethod
    def disease_detection(image_hash: str) -> str:
        return f"disease:detection:{image_hash}"

    @staticmethod
    def disease_info(disease_id: str) -> str:
        return f"disease:info:{disease_id}"

    @staticmethod
    def experts_list() -> str:
        return "experts:list"

    @staticmethod
    def expert_profile(expert_id: str) -> str:
        return f"expert:profile:{expert_id}"

    @staticmethod
    def consultation_history(user_id: str) -> str:
        return f"consultation:history:{user_id}"

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @staticmethod
    def user_notifications(user_id: str, unread_only: bool = False) -> str:
        return f"notifications:{user_id}:unread" if unread_only else f"notifications:{user_id}"

    @staticmethod
    def notification_preferences(user_id: str) -> str:
        return f"notifications:preferences:{user_id}"

    # -------------------------------------------------------------------------
    # Rate limiting / sessions / temporary data
    # -------------------------------------------------------------------------

    @staticmethod
    def rate_limit(identifier: str, endpoint: str) -> str:
        return f"ratelimit:{identifier}:{endpoint}"

    @staticmethod
    def rate_limit_window(identifier: str, endpoint: str, window: str) -> str:
        return f"ratelimit:window:{identifier}:{endpoint}:{window}"

    @staticmethod
    def user_session(session_id: str) -> str:
        return f"session:{session_id}"

    @staticmethod
    def user_sessions(user_id: str) -> str:
        return f"sessions:user:{user_id}"

    @staticmethod
    def email_verification(email: str) -> str:
        return f"email:verification:{email}"

    @staticmethod
    def password_reset(token: str) -> str:
        return f"password:reset:{token}"

    @staticmethod
    def temporary_upload(upload_id: str) -> str:
        return f"upload:temp:{upload_id}"
