"""
Cache Invalidation Middleware - Educational Documentation
==========================================================

WHAT DOES THIS MIDDLEWARE DO?
-----------------------------
It keeps cached GET responses from going stale after a mutation. For every
POST/PUT/PATCH/DELETE matching an InvalidationRule:

1. The route handler runs first
2. Only if the response status is 2xx are the rule's patterns computed
3. Deletion runs in a detached task: the client never waits on cleanup

A failed mutation (4xx/5xx) invalidates nothing, since the cached data may
still be valid.

PATTERNS:
---------
Static glob patterns, or a function of (request, path_params) so patterns
can be derived from the URL:

    InvalidationRule(
        path="/api/plants/{plant_id}",
        methods=("PUT", "DELETE"),
        patterns=lambda request, params: [
            f"plant:{params['plant_id']}*",
            "route:/api/plants*",
        ],
        tags=lambda request, params: [f"plant:{params['plant_id']}"],
    )

Each pattern is deleted independently; one failing pattern is logged and
the rest still run.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import compile_path

from agrotrack_cache.core.logging.logger import get_logger, log_stage
from agrotrack_cache.core.tasks import spawn_detached
from agrotrack_cache.infrastructure.cache.container import CacheContainer
from agrotrack_cache.infrastructure.cache.helper import delete_patterns

logger = get_logger(__name__)

PatternSpec = Sequence[str] | Callable[[Request, dict[str, str]], Iterable[str]]

MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


@dataclass
class InvalidationRule:
    """
    Declares what a successful mutation invalidates.

    Attributes:
        path: Route template matched against the request path
        methods: HTTP methods the rule applies to
        patterns: Glob patterns, static or computed from (request, path_params)
        tags: Tags to invalidate, static or computed the same way
    """

    path: str
    methods: Sequence[str] = MUTATING_METHODS
    patterns: PatternSpec = field(default_factory=tuple)
    tags: PatternSpec = field(default_factory=tuple)

    def __post_init__(self):
        self._regex, _, _ = compile_path(self.path)
        self.methods = tuple(method.upper() for method in self.methods)

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method not in self.methods:
            return None
        found = self._regex.match(path)
        return found.groupdict() if found else None

    def resolve_patterns(self, request: Request, path_params: dict[str, str]) -> list[str]:
        if callable(self.patterns):
            return list(self.patterns(request, path_params))
        return list(self.patterns)

    def resolve_tags(self, request: Request, path_params: dict[str, str]) -> list[str]:
        if callable(self.tags):
            return list(self.tags(request, path_params))
        return list(self.tags)


async def invalidate(container: CacheContainer, patterns: list[str], tags: list[str]) -> int:
    """
    Delete patterns and tags independently of each other.

    STAGE-INVALIDATE.2: Post-mutation invalidation

    Returns:
        Total keys deleted
    """
    deleted = await delete_patterns(container.store, patterns)

    for tag in tags:
        try:
            deleted += await container.tags.invalidate_by_tag(tag)
        except Exception as e:
            logger.error(
                "Cache invalidation failed for tag",
                stage="INVALIDATE.2",
                tag=tag,
                error=str(e),
                error_type=type(e).__name__,
            )

    log_stage(logger, "INVALIDATE.2", "Cache invalidated after mutation", patterns=patterns, tags=tags, deleted=deleted)
    return deleted


class CacheInvalidationMiddleware(BaseHTTPMiddleware):
    """Dispatches invalidation after successful mutations."""

    def __init__(self, app, rules: Sequence[InvalidationRule] = ()):
        super().__init__(app)
        self.rules = list(rules)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        matched = []
        for rule in self.rules:
            params = rule.match(request.method, request.url.path)
            if params is not None:
                matched.append((rule, params))
        if not matched:
            return await call_next(request)

        response = await call_next(request)

        if not 200 <= response.status_code < 300:
            log_stage(
                logger,
                "INVALIDATE.SKIP",
                "Mutation failed, cache left intact",
                level="debug",
                path=request.url.path,
                status_code=response.status_code,
            )
            return response

        patterns: list[str] = []
        tags: list[str] = []
        for rule, params in matched:
            try:
                patterns.extend(rule.resolve_patterns(request, params))
                tags.extend(rule.resolve_tags(request, params))
            except Exception as e:
                logger.error(
                    "Could not compute invalidation targets",
                    stage="INVALIDATE.1",
                    path=request.url.path,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if patterns or tags:
            spawn_detached(
                invalidate(request.app.state.cache, patterns, tags),
                name=f"invalidate:{request.method} {request.url.path}",
            )
        return response


def add_cache_invalidation_middleware(app, rules: Sequence[InvalidationRule]):
    """
    Add cache invalidation middleware to the FastAPI application.

    Args:
        app: FastAPI application instance
        rules: Mutation routes and what they invalidate
    """
    app.add_middleware(CacheInvalidationMiddleware, rules=rules)
    logger.info("Cache invalidation middleware registered", rules=len(rules))
