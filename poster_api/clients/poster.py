"""Poster REST API client."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from poster_api.cache import ReadThroughCache, TTLCache
from poster_api.config import ClientConfig
from poster_api.realtime import EventCallback, RealtimeChannel, RealtimeEvent
from poster_api.utils import UploadFile, image_form, join_path, optional_segment

LOGGER = logging.getLogger(__name__)


class PosterClient:
    """Async HTTP client for the Poster API with response caching.

    Each instance owns its own cache, HTTP connection pool and (once
    requested) realtime channel.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[TTLCache] = None,
        realtime_connect: Optional[Any] = None,
    ) -> None:
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Accept": "application/json"},
            timeout=config.timeout_seconds,
            transport=transport,
        )
        self._auth_token: Optional[str] = None
        self.set_auth_token(config.auth_token)
        self._cache = ReadThroughCache(
            cache if cache is not None else TTLCache(),
            enabled=config.cache_enabled,
            default_ttl_seconds=config.default_ttl_seconds,
        )
        self._realtime_connect = realtime_connect
        self._realtime: Optional[RealtimeChannel] = None
        self._realtime_lock = asyncio.Lock()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def auth_token(self) -> Optional[str]:
        return self._auth_token

    @property
    def cache(self) -> ReadThroughCache:
        return self._cache

    async def __aenter__(self) -> "PosterClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the realtime channel, if any, and the HTTP connection pool."""

        if self._realtime is not None:
            await self._realtime.close()
            self._realtime = None
        await self._http.aclose()

    def set_auth_token(self, token: Optional[str]) -> None:
        """Use ``token`` for every later request; a falsy token removes the header."""

        self._auth_token = token or None
        if self._auth_token:
            self._http.headers["Authorization"] = f"Bearer {self._auth_token}"
        else:
            self._http.headers.pop("Authorization", None)

    def invalidate(self, key: str) -> None:
        """Drop one cached response, e.g. after mutating the resource."""

        self._cache.cache.clear(key)

    # user

    async def register_user(self, data: Dict[str, Any]) -> Any:
        """Create an account from ``{username, email, password}``."""

        return await self._request("POST", "/user/register", json=data)

    async def login_user(self, data: Dict[str, Any]) -> Any:
        """Log in with ``{usernameOrEmail, password}``; the response carries a token."""

        return await self._request("POST", "/user/login", json=data)

    async def reset_password(self, data: Dict[str, Any]) -> Any:
        return await self._request("POST", "/user/reset-password", json=data)

    async def logout(self) -> Any:
        return await self._request("POST", "/user/logout")

    async def auth(self) -> Any:
        """Return the user the current token belongs to."""

        return await self._request("GET", "/user/auth")

    async def get_user_profile(self, username: str, *, cache_ttl: Optional[float] = None) -> Any:
        return await self._cache.cached_request(
            f"userProfile_{username}",
            lambda: self._request("GET", join_path("/user/profile", username)),
            cache_ttl,
        )

    async def get_user_profile_by_id(self, user_id: Any, *, cache_ttl: Optional[float] = None) -> Any:
        return await self._cache.cached_request(
            f"userProfileById_{user_id}",
            lambda: self._request("GET", join_path("/user/profile/id", user_id)),
            cache_ttl,
        )

    async def get_new_users(self) -> Any:
        return await self._request("GET", "/analytics/new/users")

    async def update_user_info(self, data: Dict[str, Any]) -> Any:
        """Update ``{newEmail, newUsername}`` for the current user."""

        return await self._request("POST", "/user/update-info", json=data)

    async def delete_account(self, data: Dict[str, Any]) -> Any:
        """Delete an account given ``{userId, usernameOrEmail, password}``."""

        return await self._request("POST", "/user/delete-account", json=data)

    async def update_profile_picture(self, file: UploadFile) -> Any:
        return await self._request("POST", "/user/profile-image", files=image_form(file))

    async def follow_user(self, user_id: Any) -> Any:
        return await self._request("POST", "/user/follow", json={"userIdToFollow": user_id})

    async def get_home_feed(self, page: int) -> Any:
        return await self._request("GET", join_path("/user/feed", page))

    async def get_following(self, user_id: Any, *, cache_ttl: Optional[float] = None) -> Any:
        return await self._cache.cached_request(
            f"following_{user_id}",
            lambda: self._request("GET", join_path("/user/following", user_id)),
            cache_ttl,
        )

    async def get_followers(self, user_id: Any, *, cache_ttl: Optional[float] = None) -> Any:
        return await self._cache.cached_request(
            f"followers_{user_id}",
            lambda: self._request("GET", join_path("/user/followers", user_id)),
            cache_ttl,
        )

    # notifications

    async def get_notifications(self, page: int) -> Any:
        return await self._request("GET", join_path("/notification/all", page))

    async def read_notification(self, notification_id: Any) -> Any:
        return await self._request("PATCH", join_path("/notification/read/id", notification_id))

    async def read_all_notifications(self) -> Any:
        return await self._request("PATCH", "/notification/read/all")

    # posts

    async def create_post(self, data: Dict[str, Any]) -> Any:
        """Create a post from ``{title, content, images}``."""

        return await self._request("POST", "/post/create", json=data)

    async def delete_post(self, post_id: Any) -> Any:
        return await self._request("DELETE", join_path("/post/delete", post_id))

    async def get_posts_by_user(self, user_id: Any) -> Any:
        return await self._request("GET", join_path("/post/author", user_id))

    async def get_post_by_id(self, post_id: Any) -> Any:
        return await self._request("GET", join_path("/post", post_id))

    async def search_posts(self, search_query: str) -> Any:
        """Search posts; the server treats ``search_query`` as a regular expression."""

        return await self._request("POST", "/post/search", json={"searchQuery": search_query})

    async def like_post(self, post_id: Any) -> Any:
        return await self._request("POST", "/post/like", json={"postId": post_id})

    # comments

    async def add_comment_to_post(self, data: Dict[str, Any]) -> Any:
        """Comment on a post given ``{postId, content}``."""

        return await self._request("POST", "/comment/create", json=data)

    async def delete_comment(self, comment_id: Any) -> Any:
        return await self._request("DELETE", join_path("/comment/delete", comment_id))

    async def get_comment_by_id(self, comment_id: Any) -> Any:
        return await self._request("GET", join_path("/comment", comment_id))

    async def get_comments_by_post(self, post_id: Any) -> Any:
        return await self._request("GET", join_path("/comment/post", post_id))

    async def like_comment(self, comment_id: Any) -> Any:
        return await self._request("POST", "/comment/like", json={"commentId": comment_id})

    # messaging

    async def start_conversation(self, participants: Iterable[Any]) -> Any:
        """Start a conversation with ``participants`` (excluding the current user)."""

        return await self._request(
            "POST", "/conversation/create", json={"participants": list(participants)}
        )

    async def delete_conversation(self, conversation_id: Any) -> Any:
        return await self._request("DELETE", join_path("/conversation/delete", conversation_id))

    async def get_conversations(self) -> Any:
        return await self._request("GET", "/conversation/all")

    async def send_message(self, conversation_id: Any, content: str) -> Any:
        return await self._request(
            "POST",
            "/message/send",
            json={"conversationId": conversation_id, "content": content},
        )

    async def send_typing(self, conversation_id: Any) -> Any:
        return await self._request(
            "POST", "/message/typing", json={"conversationId": conversation_id}
        )

    async def get_message_thread(self, conversation_id: Any) -> Any:
        return await self._request("GET", join_path("/message/thread", conversation_id))

    # uploads

    async def upload_image(self, file: UploadFile) -> Any:
        return await self._request("POST", "/upload/image", files=image_form(file))

    # spotify

    async def link_spotify(self) -> Any:
        return await self._request("GET", "/spotify/auth")

    async def unlink_spotify(self) -> Any:
        return await self._request("GET", "/spotify/unlink")

    async def get_spotify_top_artists(self, user_id: Optional[Any] = None) -> Any:
        return await self._request("GET", optional_segment("/spotify/top/artists", user_id))

    async def get_spotify_top_tracks(self, user_id: Optional[Any] = None) -> Any:
        return await self._request("GET", optional_segment("/spotify/top/tracks", user_id))

    async def get_currently_playing(self, user_id: Optional[Any] = None) -> Any:
        return await self._request("GET", optional_segment("/spotify/playing", user_id))

    # reports

    async def create_report(self, data: Dict[str, Any]) -> Any:
        return await self._request("POST", "/report/create", json=data)

    async def get_reports(self) -> Any:
        return await self._request("GET", "/report/all")

    # realtime

    async def connect_chat(
        self,
        on_message: Optional[EventCallback] = None,
        on_typing: Optional[EventCallback] = None,
    ) -> RealtimeChannel:
        """Open (or reuse) the realtime channel and subscribe to chat events."""

        channel = await self._get_realtime()
        if on_message is not None:
            channel.subscribe(RealtimeEvent.NEW_MESSAGE, on_message)
        if on_typing is not None:
            channel.subscribe(RealtimeEvent.TYPING, on_typing)
        return channel

    async def connect_notifications(
        self, on_notification: Optional[EventCallback] = None
    ) -> RealtimeChannel:
        """Open (or reuse) the realtime channel and subscribe to notifications."""

        channel = await self._get_realtime()
        if on_notification is not None:
            channel.subscribe(RealtimeEvent.NEW_NOTIFICATION, on_notification)
        return channel

    async def _get_realtime(self) -> RealtimeChannel:
        async with self._realtime_lock:
            if self._realtime is None:
                kwargs = {}
                if self._realtime_connect is not None:
                    kwargs["connect"] = self._realtime_connect
                self._realtime = RealtimeChannel(
                    self._config.realtime_url, self._auth_token, **kwargs
                )
            if not self._realtime.is_open:
                self._realtime.token = self._auth_token
            await self._realtime.open()
            return self._realtime

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, path, **kwargs)
        self._raise_for_status(response)
        if not response.content:
            return None
        return response.json()

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Log and re-raise non-2xx responses as ``httpx.HTTPStatusError``."""

        if response.is_success:
            return
        LOGGER.error(
            "poster request failed",
            extra={
                "method": response.request.method,
                "url": str(response.request.url),
                "status": response.status_code,
                "detail": response.text[:200],
            },
        )
        response.raise_for_status()
