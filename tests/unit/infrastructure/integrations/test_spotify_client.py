"""Tests for SpotifyClient using httpx.MockTransport."""

from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from labelcatalog.config.settings import SpotifySettings
from labelcatalog.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    ExternalServiceError,
    RateLimitExceededError,
)
from labelcatalog.infrastructure.integrations.spotify_client import SpotifyClient
from labelcatalog.infrastructure.rate_limiter import RateLimiter

Handler = Callable[[httpx.Request], httpx.Response]

TOKEN_RESPONSE = {"access_token": "tok", "token_type": "Bearer", "expires_in": 3600}


class Recorder:
    """MockTransport handler that answers the token endpoint and delegates API calls."""

    def __init__(self, api: Handler, token_status: int = 200) -> None:
        self.api = api
        self.token_status = token_status
        self.token_requests = 0
        self.api_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            self.token_requests += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json=TOKEN_RESPONSE)
        self.api_requests.append(request)
        return self.api(request)


@pytest.fixture
def settings() -> SpotifySettings:
    return SpotifySettings(client_id="id", client_secret="secret", max_retries=2)


@pytest.fixture
def limiter() -> RateLimiter:
    limiter = RateLimiter()
    # 429 handling would really sleep otherwise.
    limiter.handle_rate_limit_response = AsyncMock(return_value=0.0)  # type: ignore[method-assign]
    return limiter


def make_client(
    settings: SpotifySettings, recorder: Recorder, limiter: RateLimiter | None = None
) -> SpotifyClient:
    return SpotifyClient(
        settings, rate_limiter=limiter, transport=httpx.MockTransport(recorder)
    )


class TestAuthentication:
    """Client-credentials token handling."""

    async def test_missing_credentials(self) -> None:
        recorder = Recorder(lambda r: httpx.Response(500))

        with pytest.raises(ConfigurationError, match="SPOTIFY__CLIENT_ID"):
            await make_client(SpotifySettings(), recorder).search("label:x", types=["album"])

        assert recorder.token_requests == 0

    async def test_token_cached_across_calls(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"id": "a1"}))
        async with make_client(settings, recorder) as client:
            await client.get_artist("a1")
            await client.get_artist("a2")

        assert recorder.token_requests == 1
        assert recorder.api_requests[0].headers["Authorization"] == "Bearer tok"

    async def test_rejected_credentials(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={}), token_status=401)

        with pytest.raises(ConfigurationError, match="rejected"):
            await make_client(settings, recorder).get_artist("a1")


class TestApiRequest:
    """Status code handling in _api_request()."""

    async def test_search_params(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json={"albums": {"items": []}}))

        await make_client(settings, recorder).search(
            'label:"Build It Tech"', types=["album"], limit=500, offset=50
        )

        params = recorder.api_requests[0].url.params
        assert params["q"] == 'label:"Build It Tech"'
        assert params["type"] == "album"
        assert params["limit"] == "50"
        assert params["offset"] == "50"

    async def test_retries_after_429(
        self, settings: SpotifySettings, limiter: RateLimiter
    ) -> None:
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "2"}),
                httpx.Response(200, json={"id": "a1", "name": "Artist"}),
            ]
        )
        recorder = Recorder(lambda r: next(responses))

        data = await make_client(settings, recorder, limiter).get_artist("a1")

        assert data["name"] == "Artist"
        limiter.handle_rate_limit_response.assert_awaited_once_with(2)  # type: ignore[attr-defined]

    async def test_gives_up_after_max_retries(
        self, settings: SpotifySettings, limiter: RateLimiter
    ) -> None:
        recorder = Recorder(lambda r: httpx.Response(429, headers={"Retry-After": "soon"}))

        with pytest.raises(RateLimitExceededError) as exc_info:
            await make_client(settings, recorder, limiter).get_artist("a1")

        assert exc_info.value.retry_after is None
        assert len(recorder.api_requests) == settings.max_retries + 1

    async def test_404_is_not_found(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(404, json={"error": "not found"}))

        with pytest.raises(EntityNotFoundException):
            await make_client(settings, recorder).get_album("missing")

    async def test_server_error(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(503))

        with pytest.raises(ExternalServiceError) as exc_info:
            await make_client(settings, recorder).get_artist("a1")

        assert exc_info.value.status_code == 503

    async def test_malformed_json(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(ExternalServiceError, match="Malformed JSON"):
            await make_client(settings, recorder).get_artist("a1")

    async def test_non_object_json(self, settings: SpotifySettings) -> None:
        recorder = Recorder(lambda r: httpx.Response(200, json=[1, 2]))

        with pytest.raises(ExternalServiceError, match="expected object"):
            await make_client(settings, recorder).get_artist("a1")

    async def test_transport_failure(self, settings: SpotifySettings) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalServiceError, match="ConnectError"):
            await make_client(settings, Recorder(boom)).get_artist("a1")


class TestEndpoints:
    async def test_get_album_follows_track_pages(self, settings: SpotifySettings) -> None:
        """Test that every track page is spliced into one listing."""
        next_url = "https://api.spotify.com/v1/albums/al1/tracks?offset=50&limit=50"

        def api(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/albums/al1":
                return httpx.Response(
                    200,
                    json={
                        "id": "al1",
                        "name": "Album",
                        "tracks": {"items": [{"id": "t1"}], "next": next_url},
                    },
                )
            return httpx.Response(200, json={"items": [{"id": "t2"}], "next": None})

        album = await make_client(settings, Recorder(api)).get_album("al1")

        assert [t["id"] for t in album["tracks"]["items"]] == ["t1", "t2"]
        assert album["tracks"]["next"] is None

    async def test_audio_features_batched_and_nulls_dropped(
        self, settings: SpotifySettings
    ) -> None:
        def api(request: httpx.Request) -> httpx.Response:
            ids = request.url.params["ids"].split(",")
            return httpx.Response(
                200,
                json={"audio_features": [{"id": i, "energy": 0.5} for i in ids[:-1]] + [None]},
            )

        recorder = Recorder(api)
        track_ids = [f"t{n}" for n in range(150)]

        features = await make_client(settings, recorder).get_audio_features(track_ids)

        assert len(recorder.api_requests) == 2
        assert len(features) == 148
