"""
Unit Tests for the Response Cache and Cache Invalidation Middleware

The app is driven through httpx's ASGI transport so the detached store and
invalidation tasks run on the test's own event loop and can be drained.
"""

import httpx
import pytest
from fastapi import HTTPException
from fastapi.responses import PlainTextResponse
from starlette.requests import Request

from agrotrack_cache.application.api.middleware import CacheRule, InvalidationRule, build_cache_key
from agrotrack_cache.application.app import create_app
from agrotrack_cache.core.tasks import drain_background_tasks
from tests.test_fixtures.cache_factory import CacheTestFactory


def _request(path="/api/plants", query=b"", headers=(), user_id=None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": query,
        "headers": [(name.lower().encode(), value.encode()) for name, value in headers],
    }
    request = Request(scope)
    request.state.user_id = user_id
    return request


@pytest.mark.unit
class TestBuildCacheKey:
    """Deterministic key derivation."""

    def test_path_only(self):
        assert build_cache_key(_request()) == "route:/api/plants"

    def test_query_order_does_not_matter(self):
        first = build_cache_key(_request(query=b"page=2&limit=10"))
        second = build_cache_key(_request(query=b"limit=10&page=2"))

        assert first == second == "route:/api/plants?limit=10&page=2"

    def test_repeated_query_values_are_joined(self):
        assert build_cache_key(_request(query=b"tag=a&tag=b")) == "route:/api/plants?tag=a,b"

    def test_user_separation(self):
        assert build_cache_key(_request(user_id="1")) != build_cache_key(_request(user_id="2"))
        assert build_cache_key(_request(user_id="1")).endswith("|user:1")

    def test_vary_headers(self):
        key = build_cache_key(_request(headers=[("Accept-Language", "pt")]), vary_headers=["Accept-Language"])

        assert key == "route:/api/plants|vary:pt"

    def test_missing_vary_header_adds_nothing(self):
        assert build_cache_key(_request(), vary_headers=["Accept-Language"]) == "route:/api/plants"

    def test_custom_prefix(self):
        assert build_cache_key(_request(), prefix="r:") == "r:/api/plants"


@pytest.mark.unit
class TestCacheRule:
    """Route templates."""

    def test_match_extracts_params(self):
        rule = CacheRule("/api/plants/{plant_id}")

        assert rule.match("/api/plants/42") == {"plant_id": "42"}
        assert rule.match("/api/plants") is None

    def test_static_and_computed_tags(self):
        request = _request()

        assert CacheRule("/x", tags=["plants"]).resolve_tags(request, {}) == ["plants"]
        assert CacheRule("/x", tags=lambda r, p: [f"plant:{p['id']}"]).resolve_tags(request, {"id": "1"}) == ["plant:1"]

    def test_invalidation_rule_methods(self):
        rule = InvalidationRule("/api/plants/{plant_id}", methods=("put",))

        assert rule.match("PUT", "/api/plants/1") == {"plant_id": "1"}
        assert rule.match("DELETE", "/api/plants/1") is None


class _PlantApi:
    """Small plant API with call counters, wrapped by the cache middleware."""

    def __init__(self, container, settings):
        self.calls: dict[str, int] = {}
        self.plants = {"1": {"id": "1", "name": "Fern", "light": "shade"}}

        cache_rules = [
            CacheRule("/api/plants"),
            CacheRule(
                "/api/plants/{plant_id}",
                ttl=600,
                tags=lambda request, params: [f"plant:{params['plant_id']}"],
            ),
            CacheRule(
                "/api/weather",
                skip_cache=lambda request: request.headers.get("cache-control") == "no-cache",
            ),
            CacheRule("/api/text"),
            CacheRule("/api/missing"),
            CacheRule("/api/reminders/next"),
        ]
        invalidation_rules = [
            InvalidationRule(
                "/api/plants/{plant_id}",
                methods=("PUT", "DELETE"),
                patterns=["route:/api/plants*"],
                tags=lambda request, params: [f"plant:{params['plant_id']}"],
            ),
        ]
        self.app = create_app(
            settings, cache_rules=cache_rules, invalidation_rules=invalidation_rules, container=container
        )
        self.app.state.cache = container

        def count(name):
            self.calls[name] = self.calls.get(name, 0) + 1

        @self.app.get("/api/plants")
        async def list_plants(page: int = 1):
            count("list")
            return {"page": page, "items": list(self.plants.values())}

        @self.app.get("/api/plants/{plant_id}")
        async def get_plant(plant_id: str):
            count("get")
            if plant_id not in self.plants:
                raise HTTPException(status_code=404, detail="Plant not found")
            return self.plants[plant_id]

        @self.app.put("/api/plants/{plant_id}")
        async def update_plant(plant_id: str, body: dict):
            count("put")
            if plant_id not in self.plants:
                raise HTTPException(status_code=404, detail="Plant not found")
            self.plants[plant_id] = {**self.plants[plant_id], **body}
            return self.plants[plant_id]

        @self.app.get("/api/weather")
        async def weather():
            count("weather")
            return {"temp": 21}

        @self.app.get("/api/text")
        async def text():
            count("text")
            return PlainTextResponse("hello")

        @self.app.get("/api/reminders/next")
        async def next_reminder():
            count("reminder")
            return None

        @self.app.get("/api/missing")
        async def missing():
            count("missing")
            raise HTTPException(status_code=404, detail="nope")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app), base_url="http://testserver")


@pytest.fixture
async def plant_api(container, test_settings):
    await container.store.connect()
    return _PlantApi(container, test_settings)


@pytest.mark.unit
class TestResponseCacheMiddleware:
    """Transparent GET caching."""

    @pytest.mark.asyncio
    async def test_hit_short_circuits_handler_with_identical_body(self, plant_api):
        async with plant_api.client() as client:
            miss = await client.get("/api/plants?page=2&limit=10")
            await drain_background_tasks(timeout=1.0)
            hit = await client.get("/api/plants?limit=10&page=2")

        assert miss.headers["X-Cache"] == "MISS"
        assert hit.headers["X-Cache"] == "HIT"
        assert hit.content == miss.content
        assert hit.headers["content-type"] == "application/json"
        assert plant_api.calls["list"] == 1

    @pytest.mark.asyncio
    async def test_users_never_share_entries(self, plant_api):
        async with plant_api.client() as client:
            await client.get("/api/plants", headers={"X-User-ID": "1"})
            await drain_background_tasks(timeout=1.0)
            other = await client.get("/api/plants", headers={"X-User-ID": "2"})
            await drain_background_tasks(timeout=1.0)
            same = await client.get("/api/plants", headers={"X-User-ID": "1"})

        assert other.headers["X-Cache"] == "MISS"
        assert same.headers["X-Cache"] == "HIT"
        assert plant_api.calls["list"] == 2

    @pytest.mark.asyncio
    async def test_entry_written_with_rule_ttl_and_tags(self, plant_api, container):
        async with plant_api.client() as client:
            await client.get("/api/plants/1")
            await drain_background_tasks(timeout=1.0)

        assert await container.store.get("route:/api/plants/1") == plant_api.plants["1"]
        assert await container.store.ttl("route:/api/plants/1") == 600
        assert await container.tags.get_tagged_keys("plant:1") == {"route:/api/plants/1"}

    @pytest.mark.asyncio
    async def test_default_route_ttl(self, plant_api, container, test_settings):
        async with plant_api.client() as client:
            await client.get("/api/plants")
            await drain_background_tasks(timeout=1.0)

        assert await container.store.ttl("route:/api/plants") == test_settings.CACHE_ROUTE_TTL

    @pytest.mark.asyncio
    async def test_skip_cache_predicate(self, plant_api):
        async with plant_api.client() as client:
            for _ in range(2):
                response = await client.get("/api/weather", headers={"Cache-Control": "no-cache"})
                await drain_background_tasks(timeout=1.0)
                assert "X-Cache" not in response.headers

        assert plant_api.calls["weather"] == 2

    @pytest.mark.asyncio
    async def test_error_responses_are_not_cached(self, plant_api, container):
        async with plant_api.client() as client:
            first = await client.get("/api/missing")
            await drain_background_tasks(timeout=1.0)
            await client.get("/api/missing")

        assert first.status_code == 404
        assert plant_api.calls["missing"] == 2
        assert await container.store.exists("route:/api/missing") is False

    @pytest.mark.asyncio
    async def test_null_payloads_are_not_cached(self, plant_api, container):
        async with plant_api.client() as client:
            first = await client.get("/api/reminders/next")
            await drain_background_tasks(timeout=1.0)
            second = await client.get("/api/reminders/next")

        assert first.json() is None
        assert second.content == first.content
        assert "X-Cache" not in second.headers
        assert plant_api.calls["reminder"] == 2
        assert await container.store.exists("route:/api/reminders/next") is False
        assert container.store.get_stats()["hits"] == 0

    @pytest.mark.asyncio
    async def test_non_json_responses_are_not_cached(self, plant_api):
        async with plant_api.client() as client:
            response = await client.get("/api/text")
            await drain_background_tasks(timeout=1.0)
            await client.get("/api/text")

        assert response.text == "hello"
        assert plant_api.calls["text"] == 2

    @pytest.mark.asyncio
    async def test_unmatched_routes_pass_through(self, plant_api):
        async with plant_api.client() as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert "X-Cache" not in response.headers

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, plant_api):
        async with plant_api.client() as client:
            given = await client.get("/api/plants", headers={"X-Request-ID": "req_given"})
            generated = await client.get("/api/plants")

        assert given.headers["X-Request-ID"] == "req_given"
        assert generated.headers["X-Request-ID"].startswith("req_")

    @pytest.mark.asyncio
    async def test_works_with_redis_down(self, failing_backend, test_settings):
        container = CacheTestFactory.container(failing_backend, settings=test_settings)
        await container.store.connect()
        api = _PlantApi(container, test_settings)

        async with api.client() as client:
            await client.get("/api/plants")
            await drain_background_tasks(timeout=1.0)
            hit = await client.get("/api/plants")

        assert hit.headers["X-Cache"] == "HIT"
        assert api.calls["list"] == 1


@pytest.mark.unit
class TestCacheInvalidationMiddleware:
    """Invalidation after successful mutations only."""

    @pytest.mark.asyncio
    async def test_successful_mutation_invalidates(self, plant_api):
        async with plant_api.client() as client:
            await client.get("/api/plants/1")
            await client.get("/api/plants")
            await drain_background_tasks(timeout=1.0)

            updated = await client.put("/api/plants/1", json={"name": "Boston Fern"})
            await drain_background_tasks(timeout=1.0)

            detail = await client.get("/api/plants/1")
            listing = await client.get("/api/plants")

        assert updated.status_code == 200
        assert detail.headers["X-Cache"] == "MISS"
        assert detail.json()["name"] == "Boston Fern"
        assert listing.headers["X-Cache"] == "MISS"

    @pytest.mark.asyncio
    async def test_tag_set_removed_with_members(self, plant_api, container):
        async with plant_api.client() as client:
            await client.get("/api/plants/1")
            await drain_background_tasks(timeout=1.0)
            await client.put("/api/plants/1", json={"name": "Boston Fern"})
            await drain_background_tasks(timeout=1.0)

        assert await container.store.keys("tag:*") == []

    @pytest.mark.asyncio
    async def test_failed_mutation_keeps_cache(self, plant_api):
        async with plant_api.client() as client:
            await client.get("/api/plants")
            await drain_background_tasks(timeout=1.0)

            failed = await client.put("/api/plants/999", json={"name": "Ghost"})
            await drain_background_tasks(timeout=1.0)

            listing = await client.get("/api/plants")

        assert failed.status_code == 404
        assert listing.headers["X-Cache"] == "HIT"

    @pytest.mark.asyncio
    async def test_get_requests_never_invalidate(self, plant_api, container):
        async with plant_api.client() as client:
            await client.get("/api/plants")
            await drain_background_tasks(timeout=1.0)
            await client.get("/api/plants/1")
            await drain_background_tasks(timeout=1.0)

        assert await container.store.exists("route:/api/plants") is True
