"""Spotify Web API client (client-credentials flow) returning raw JSON."""

import base64
import logging
import time
from typing import Any, cast

import httpx

from labelcatalog.config.settings import SpotifySettings
from labelcatalog.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    ExternalServiceError,
    RateLimitExceededError,
)
from labelcatalog.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SERVICE_NAME = "spotify"

# Spotify caps: search/album tracks at 50 per page, audio features at 100 ids per call.
MAX_PAGE_LIMIT = 50
AUDIO_FEATURES_BATCH = 100

# Refresh the app token this many seconds before Spotify says it expires.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class SpotifyClient:
    """HTTP client for the catalog endpoints the importer needs.

    Every call goes through _api_request(): it takes a rate limiter token,
    attaches the cached app token, retries 429 responses per Retry-After and
    translates transport/HTTP failures into domain exceptions. Callers never
    see an httpx exception.
    """

    # Hey future me, we DON'T create the httpx.AsyncClient here - it gets lazy-loaded in
    # _get_client() so the client is bound to the running loop. transport is only passed by
    # tests (httpx.MockTransport); production leaves it None.
    def __init__(
        self,
        settings: SpotifySettings,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.rate_limiter = rate_limiter or RateLimiter.for_spotify()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Listen up, missing credentials are a RUN-LEVEL problem: ConfigurationError aborts the
    # import and marks the run failed. A 400/401 from the token endpoint means the credentials
    # are wrong, which is the same class of problem.
    async def _get_access_token(self) -> str:
        """App access token, fetched on first use and cached until shortly before expiry."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self.settings.is_configured:
            raise ConfigurationError(
                "Spotify credentials not configured. "
                "Set SPOTIFY__CLIENT_ID and SPOTIFY__CLIENT_SECRET."
            )

        credentials = f"{self.settings.client_id}:{self.settings.client_secret}"
        basic = base64.b64encode(credentials.encode()).decode()
        client = await self._get_client()
        try:
            response = await client.post(
                self.settings.token_url,
                data={"grant_type": "client_credentials"},
                headers={"Authorization": f"Basic {basic}"},
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                f"Spotify token request failed: {e}", service=SERVICE_NAME
            ) from e

        if response.status_code in (400, 401):
            raise ConfigurationError(
                f"Spotify rejected client credentials ({response.status_code})"
            )
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"Spotify token endpoint returned {response.status_code}",
                service=SERVICE_NAME,
                status_code=response.status_code,
            )

        payload = self._json(response)
        token = payload.get("access_token")
        if not token:
            raise ExternalServiceError(
                "Spotify token response has no access_token", service=SERVICE_NAME
            )
        expires_in = int(payload.get("expires_in", 3600))
        self._access_token = str(token)
        self._token_expires_at = (
            time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        )
        logger.debug("Spotify app token refreshed", extra={"expires_in": expires_in})
        return self._access_token

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"Malformed JSON from Spotify ({response.request.url})",
                service=SERVICE_NAME,
            ) from e
        if not isinstance(data, dict):
            raise ExternalServiceError(
                "Unexpected Spotify response shape (expected object)",
                service=SERVICE_NAME,
            )
        return cast(dict[str, Any], data)

    async def _api_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Rate-limited request with 429 retry.

        Raises:
            ConfigurationError: credentials missing or rejected
            EntityNotFoundException: 404 for the requested resource
            RateLimitExceededError: still 429 after max_retries
            ExternalServiceError: network failure, other 4xx/5xx, malformed JSON
        """
        client = await self._get_client()
        url = path if path.startswith("http") else f"{self.settings.api_base_url}{path}"
        max_retries = self.settings.max_retries

        for attempt in range(max_retries + 1):
            token = await self._get_access_token()
            try:
                async with self.rate_limiter:
                    response = await client.request(
                        method,
                        url,
                        params=params,
                        headers={"Authorization": f"Bearer {token}"},
                    )
            except httpx.HTTPError as e:
                raise ExternalServiceError(
                    f"Spotify request failed: {type(e).__name__}: {e}",
                    service=SERVICE_NAME,
                ) from e

            if response.status_code == 429:
                retry_after_raw = response.headers.get("Retry-After", "")
                retry_after = int(retry_after_raw) if retry_after_raw.isdigit() else None
                if attempt >= max_retries:
                    raise RateLimitExceededError(
                        f"Spotify API rate limited (429) after {max_retries} retries: {path}",
                        service=SERVICE_NAME,
                        retry_after=retry_after,
                    )
                await self.rate_limiter.handle_rate_limit_response(retry_after)
                continue

            if response.status_code == 401 and attempt < max_retries:
                # Token revoked/expired early; fetch a new one and retry once more.
                self._access_token = None
                continue

            if response.status_code == 404:
                raise EntityNotFoundException("Spotify resource", path)

            if response.status_code >= 400:
                raise ExternalServiceError(
                    f"Spotify API error {response.status_code} for {path}",
                    service=SERVICE_NAME,
                    status_code=response.status_code,
                )

            return self._json(response)

        raise ExternalServiceError(
            f"Spotify request gave up after {max_retries} retries: {path}",
            service=SERVICE_NAME,
        )

    async def search(
        self,
        query: str,
        types: list[str],
        limit: int = 20,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Search across resource types (raw JSON)."""
        params: dict[str, str | int] = {
            "q": query,
            "type": ",".join(types),
            "limit": max(1, min(limit, MAX_PAGE_LIMIT)),
            "offset": offset,
        }
        return await self._api_request("GET", "/search", params=params)

    # Hey future me, the album object embeds only the FIRST page of tracks (50). Compilations
    # have more, so we follow tracks.next until it's null and splice everything into one
    # tracks.items list. Callers get a complete album, never a partial track listing.
    async def get_album(self, album_id: str) -> dict[str, Any]:
        """Full album including label, copyrights and every track page."""
        album = await self._api_request("GET", f"/albums/{album_id}")
        tracks = album.get("tracks")
        if not isinstance(tracks, dict):
            return album

        items = list(tracks.get("items") or [])
        next_url = tracks.get("next")
        while next_url:
            page = await self._api_request("GET", str(next_url))
            items.extend(page.get("items") or [])
            next_url = page.get("next")

        album["tracks"] = {**tracks, "items": items, "next": None}
        return album

    async def get_artist(self, artist_id: str) -> dict[str, Any]:
        """Artist with images, genres, popularity and followers."""
        return await self._api_request("GET", f"/artists/{artist_id}")

    async def get_audio_features(self, track_ids: list[str]) -> list[dict[str, Any]]:
        """Audio features for any number of tracks, requested in batches of 100.

        Spotify returns null for tracks it has no analysis for; those are dropped.
        """
        features: list[dict[str, Any]] = []
        for start in range(0, len(track_ids), AUDIO_FEATURES_BATCH):
            batch = track_ids[start : start + AUDIO_FEATURES_BATCH]
            if not batch:
                continue
            payload = await self._api_request(
                "GET", "/audio-features", params={"ids": ",".join(batch)}
            )
            features.extend(
                item
                for item in payload.get("audio_features") or []
                if isinstance(item, dict)
            )
        return features

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
