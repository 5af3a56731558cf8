"""
Response Cache Middleware - Educational Documentation
======================================================

WHAT DOES THIS MIDDLEWARE DO?
-----------------------------
It transparently caches successful JSON responses of GET requests.

    HIT:  serve the cached body immediately, X-Cache: HIT. The route handler
          does NOT run (its logging and side effects are skipped).
    MISS: run the handler; if it returned a 200 JSON response, capture the
          body, store it in a detached task and respond with X-Cache: MISS.
          A JSON null body is passed through uncached.

Which requests are cached is declared with CacheRule entries. Anything that
is not a GET or matches no rule passes through untouched.

CACHE KEY DERIVATION:
---------------------
    route:/api/plants?limit=10&page=2|vary:en-US|user:42
    └─prefix─┘└─path─┘└─sorted query─┘└─vary──┘└─user─┘

- Query parameters are sorted, so ?b=2&a=1 and ?a=1&b=2 share an entry
- The vary segment holds the configured header values joined by "|"
- The user segment keeps two users from ever seeing each other's payload

BYTE-IDENTICAL RESPONSES:
-------------------------
Both the MISS response and every later HIT response are rendered from the
same decoded value by the same encoder (orjson), so clients get identical
bytes whichever path served them.

FAILURE POLICY:
---------------
A failing cache lookup is logged and the request goes to the handler. A
failing store write is logged by the detached task and never alters the
response already sent.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import orjson
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import compile_path

from agrotrack_cache.core.config.constants import (
    CACHE_STATUS_HIT,
    CACHE_STATUS_MISS,
    DEFAULT_ROUTE_PREFIX,
    DEFAULT_ROUTE_TTL,
    HEADER_CACHE_STATUS,
)
from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.core.tasks import spawn_detached
from agrotrack_cache.infrastructure.cache.container import CacheContainer

logger = get_logger(__name__)

TagSpec = Sequence[str] | Callable[[Request, dict[str, str]], Iterable[str]]

# Recomputed by Response for the re-rendered body
_DROPPED_HEADERS = {"content-length", "content-type"}


# ============================================================================
# CACHE RULES
# ============================================================================


@dataclass
class CacheRule:
    """
    Declares a cacheable route.

    Attributes:
        path: Route template, e.g. "/api/plants" or "/api/plants/{plant_id}"
        ttl: Seconds to cache (middleware default when None)
        vary_headers: Request headers whose values split the cache
        skip_cache: Predicate opting a request out (e.g. a cache-busting header)
        key_generator: Replaces the default key derivation
        tags: Tags for the stored entry, static or computed from
            (request, path_params)

    Example:
        CacheRule(
            path="/api/plants/{plant_id}",
            ttl=600,
            vary_headers=("Accept-Language",),
            skip_cache=lambda request: "no-cache" in request.headers.get("cache-control", ""),
            tags=lambda request, params: [f"plant:{params['plant_id']}"],
        )
    """

    path: str
    ttl: int | None = None
    vary_headers: Sequence[str] = ()
    skip_cache: Callable[[Request], bool] | None = None
    key_generator: Callable[[Request], str] | None = None
    tags: TagSpec = field(default_factory=tuple)

    def __post_init__(self):
        self._regex, _, _ = compile_path(self.path)

    def match(self, path: str) -> dict[str, str] | None:
        """Path parameters when the path matches this rule, else None."""
        found = self._regex.match(path)
        return found.groupdict() if found else None

    def resolve_tags(self, request: Request, path_params: dict[str, str]) -> list[str]:
        if callable(self.tags):
            return list(self.tags(request, path_params))
        return list(self.tags)


# ============================================================================
# KEY DERIVATION
# ============================================================================


def build_cache_key(request: Request, prefix: str = DEFAULT_ROUTE_PREFIX, vary_headers: Sequence[str] = ()) -> str:
    """
    Deterministic cache key for a request.

    Format: prefix + path [+ "?" sorted k=v joined by "&"]
            [+ "|vary:" header values joined by "|"] [+ "|user:" id]

    Repeated query parameters keep their values in request order, joined
    with ",".

    Args:
        request: Incoming request (request.state.user_id set upstream)
        prefix: Key prefix for cached routes
        vary_headers: Header names contributing to the key
    """
    key = f"{prefix}{request.url.path}"

    grouped: dict[str, list[str]] = {}
    for name, value in request.query_params.multi_items():
        grouped.setdefault(name, []).append(value)
    if grouped:
        key += "?" + "&".join(f"{name}={','.join(grouped[name])}" for name in sorted(grouped))

    vary = "|".join(request.headers.get(header, "") for header in vary_headers)
    if vary:
        key += f"|vary:{vary}"

    user_id = getattr(request.state, "user_id", None)
    if user_id:
        key += f"|user:{user_id}"

    return key


def render_json(payload: Any) -> bytes:
    """The one encoder used for both MISS and HIT bodies."""
    return orjson.dumps(payload)


# ============================================================================
# MIDDLEWARE
# ============================================================================


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Serves cached JSON for GET routes declared by CacheRule entries.

    The cache container is looked up on request.app.state.cache at request
    time, since it is built in the application lifespan.
    """

    def __init__(
        self,
        app,
        rules: Sequence[CacheRule] = (),
        key_prefix: str = DEFAULT_ROUTE_PREFIX,
        default_ttl: int = DEFAULT_ROUTE_TTL,
    ):
        """
        Args:
            app: The ASGI application
            rules: Cacheable routes (first match wins)
            key_prefix: Prefix of every route cache key
            default_ttl: TTL for rules that declare none
        """
        super().__init__(app)
        self.rules = list(rules)
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl

    def _match(self, path: str) -> tuple[CacheRule | None, dict[str, str]]:
        for rule in self.rules:
            params = rule.match(path)
            if params is not None:
                return rule, params
        return None, {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method != "GET":
            return await call_next(request)

        rule, path_params = self._match(request.url.path)
        if rule is None:
            return await call_next(request)

        if rule.skip_cache and rule.skip_cache(request):
            log_stage(logger, "ROUTE_CACHE.SKIP", "Route cache skipped", level="debug", path=request.url.path)
            return await call_next(request)

        container: CacheContainer = request.app.state.cache
        if rule.key_generator:
            key = rule.key_generator(request)
        else:
            key = build_cache_key(request, self.key_prefix, rule.vary_headers)

        # STAGE-ROUTE_CACHE.1: Lookup
        try:
            cached = await container.store.get(key)
        except Exception as e:
            logger.warning("Route cache lookup failed", stage="ROUTE_CACHE.1", key=key, error=str(e))
            cached = None

        if cached is not None:
            log_stage(logger, "ROUTE_CACHE.HIT", "Route cache hit", level="debug", key=key)
            return Response(
                content=render_json(cached),
                status_code=200,
                media_type="application/json",
                headers={HEADER_CACHE_STATUS: CACHE_STATUS_HIT},
            )

        # STAGE-ROUTE_CACHE.2: Miss, run the handler
        response = await call_next(request)

        content_type = response.headers.get("content-type", "")
        if response.status_code != 200 or not content_type.startswith("application/json"):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        headers = {k: v for k, v in response.headers.items() if k.lower() not in _DROPPED_HEADERS}

        try:
            payload = orjson.loads(body)
        except orjson.JSONDecodeError:
            logger.warning("Route response is not valid JSON, not cached", stage="ROUTE_CACHE.2", key=key)
            return Response(content=body, status_code=response.status_code, headers=headers, media_type=content_type)

        # A stored null reads back as a miss
        if payload is None:
            return Response(content=body, status_code=response.status_code, headers=headers, media_type=content_type)

        ttl = rule.ttl if rule.ttl is not None else self.default_ttl
        tags = rule.resolve_tags(request, path_params)
        spawn_detached(self._store_response(container, key, payload, ttl, tags), name=f"route-cache:{key}")

        headers[HEADER_CACHE_STATUS] = CACHE_STATUS_MISS
        log_stage(logger, "ROUTE_CACHE.MISS", "Route cache miss", level="debug", key=key)
        return Response(
            content=render_json(payload),
            status_code=200,
            media_type="application/json",
            headers=headers,
        )

    @staticmethod
    async def _store_response(
        container: CacheContainer, key: str, payload: Any, ttl: int, tags: list[str]
    ) -> None:
        """
        Write a captured response and tag it.

        STAGE-ROUTE_CACHE.3: Detached store write
        """
        await container.store.set(key, payload, ttl)
        if tags:
            await container.tags.tag_key(key, tags)


def add_response_cache_middleware(
    app,
    rules: Sequence[CacheRule],
    key_prefix: str = DEFAULT_ROUTE_PREFIX,
    default_ttl: int = DEFAULT_ROUTE_TTL,
):
    """
    Add response cache middleware to the FastAPI application.

    Args:
        app: FastAPI application instance
        rules: Cacheable routes
        key_prefix: Prefix of every route cache key
        default_ttl: TTL for rules that declare none
    """
    app.add_middleware(ResponseCacheMiddleware, rules=rules, key_prefix=key_prefix, default_ttl=default_ttl)
    logger.info("Response cache middleware registered", rules=len(rules), key_prefix=key_prefix)
