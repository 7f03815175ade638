"""
X (Twitter) publisher: posts through the v2 API with an OAuth2 user access token.
Verifies the token before posting and refreshes it once when a post is rejected with 401.
Media is uploaded in chunks before the post that carries it.
"""

import asyncio
from typing import Any

import aiohttp
from loguru import logger

from publishers.base import BasePublisher, PublishError

API_BASE = "https://api.x.com/2"
MAX_LOGIN_ATTEMPTS = 3
CHUNK_SIZE = 4 * 1024 * 1024


def media_category(media_type: str) -> str:
    """X media category for a MIME type."""
    if media_type == "image/gif":
        return "tweet_gif"
    if media_type.startswith("video/"):
        return "tweet_video"
    return "tweet_image"


class XPublisher(BasePublisher):
    """Post and reply on X. Credentials come from config (ultimately the environment)."""

    def __init__(
        self,
        access_token: str,
        *,
        refresh_token: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        session: aiohttp.ClientSession | None = None,
        api_base: str = API_BASE,
        media_type: str = "video/mp4",
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.media_type = media_type
        self.chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None
        self.is_logged_in = False
        self.login_attempts = 0

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def ensure_authenticated(self) -> bool:
        """Check the token against /users/me. Gives up after MAX_LOGIN_ATTEMPTS consecutive failures."""
        if self.is_logged_in:
            return True
        if self.login_attempts >= MAX_LOGIN_ATTEMPTS:
            return False
        logger.info("🔑 Verifying X credentials...")
        try:
            status, data = await self._get_me()
            if status == 401 and await self._refresh():
                status, data = await self._get_me()
            if status != 200:
                raise PublishError(f"HTTP {status}: {data}")
        except (aiohttp.ClientError, PublishError) as e:
            self.login_attempts += 1
            logger.error("❌ Failed to authenticate with X: {}", e)
            if self.login_attempts >= MAX_LOGIN_ATTEMPTS:
                logger.warning("⚠️ Maximum login attempts reached. Posting is disabled.")
            return False
        self.is_logged_in = True
        self.login_attempts = 0
        username = (data.get("data") or {}).get("username", "user")
        logger.info("✅ Authenticated with X as @{}", username)
        return True

    async def _get_me(self) -> tuple[int, Any]:
        async with self._get_session().get(
            f"{self.api_base}/users/me", headers=self._headers()
        ) as resp:
            if resp.status != 200:
                return resp.status, await resp.text()
            return resp.status, await resp.json()

    async def _refresh(self) -> bool:
        """Exchange the refresh token for a new access token. Returns False if not possible."""
        if not (self.refresh_token and self.client_id):
            return False
        logger.info("🔄 Refreshing X access token...")
        auth = aiohttp.BasicAuth(self.client_id, self.client_secret) if self.client_secret else None
        form = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }
        try:
            async with self._get_session().post(
                f"{self.api_base}/oauth2/token", data=form, auth=auth
            ) as resp:
                if resp.status != 200:
                    logger.error("❌ Token refresh failed: HTTP {}", resp.status)
                    return False
                data = await resp.json()
        except aiohttp.ClientError as e:
            logger.error("❌ Token refresh failed: {}", e)
            return False
        self.access_token = data["access_token"]
        self.refresh_token = data.get("refresh_token", self.refresh_token)
        return True

    async def _post_tweet(self, payload: dict[str, Any]) -> str:
        """POST /tweets; refresh and retry once on 401. Returns the new tweet id."""
        session = self._get_session()
        for attempt in range(2):
            async with session.post(
                f"{self.api_base}/tweets", json=payload, headers=self._headers()
            ) as resp:
                if resp.status == 401 and attempt == 0:
                    logger.info("🔄 Auth error detected, attempting to refresh credentials...")
                    self.is_logged_in = False
                    if await self._refresh():
                        continue
                if resp.status not in (200, 201):
                    raise PublishError(f"HTTP {resp.status}: {await resp.text()}")
                data = await resp.json()
                self.is_logged_in = True
                return data["data"]["id"]
        raise PublishError("Post rejected after credential refresh")

    async def _json_or_raise(self, resp: aiohttp.ClientResponse) -> Any:
        if not 200 <= resp.status < 300:
            raise PublishError(f"HTTP {resp.status}: {await resp.text()}")
        return await resp.json()

    async def upload_media(self, media: bytes, media_type: str | None = None) -> str:
        """
        Chunked upload: initialize, append each chunk, finalize, then wait out any server-side
        processing. Returns the media id to attach to a post.
        """
        media_type = media_type or self.media_type
        session = self._get_session()
        upload = f"{self.api_base}/media/upload"
        init = {
            "media_type": media_type,
            "total_bytes": len(media),
            "media_category": media_category(media_type),
        }
        async with session.post(f"{upload}/initialize", json=init, headers=self._headers()) as resp:
            media_id = (await self._json_or_raise(resp))["data"]["id"]

        for index, start in enumerate(range(0, len(media), self.chunk_size)):
            form = aiohttp.FormData()
            form.add_field("segment_index", str(index))
            form.add_field(
                "media",
                media[start:start + self.chunk_size],
                filename="media",
                content_type="application/octet-stream",
            )
            async with session.post(
                f"{upload}/{media_id}/append", data=form, headers=self._headers()
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise PublishError(f"Chunk {index} rejected: HTTP {resp.status}: {await resp.text()}")

        async with session.post(f"{upload}/{media_id}/finalize", headers=self._headers()) as resp:
            info = (await self._json_or_raise(resp))["data"].get("processing_info")
        while info and info.get("state") in ("pending", "in_progress"):
            await asyncio.sleep(info.get("check_after_secs", 1))
            async with session.get(
                upload, params={"command": "STATUS", "media_id": media_id}, headers=self._headers()
            ) as resp:
                info = (await self._json_or_raise(resp))["data"].get("processing_info")
        if info and info.get("state") == "failed":
            raise PublishError(f"Media {media_id} processing failed: {info.get('error')}")
        logger.info("📎 Uploaded {} bytes of {} as media {}", len(media), media_type, media_id)
        return media_id

    async def _send(self, payload: dict[str, Any], media: bytes | None) -> bool:
        if not await self.ensure_authenticated():
            logger.warning("⚠️ Skipping post due to login issues")
            return False
        try:
            if media:
                logger.info("🐦 Uploading media...")
                payload = {**payload, "media": {"media_ids": [await self.upload_media(media)]}}
            tweet_id = await self._post_tweet(payload)
        except (aiohttp.ClientError, PublishError) as e:
            logger.error("❌ Error sending post: {}", e)
            return False
        logger.info("✅ Post {} sent successfully", tweet_id)
        return True

    async def publish(self, text: str, media: bytes | None = None) -> bool:
        logger.info("🐦 Sending post...")
        return await self._send({"text": text}, media)

    async def reply(self, text: str, tweet_id: str, media: bytes | None = None) -> bool:
        """Reply to an existing post."""
        if not tweet_id:
            logger.warning("⚠️ No post id provided for reply")
            return False
        logger.info("🐦 Sending reply to {}...", tweet_id)
        return await self._send({"text": text, "reply": {"in_reply_to_tweet_id": tweet_id}}, media)

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
