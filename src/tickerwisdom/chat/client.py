import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
from dotenv import load_dotenv
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .state import ChatConfig, ChatMessage

logger = logging.getLogger(__name__)

REPLY_MESSAGE_TYPE = 19
MAX_PAGE_SIZE = 100


# Custom Exceptions
class ChatAPIError(Exception):
    """Base exception for chat API errors"""
    pass


class RateLimitError(ChatAPIError):
    """Raised when the API answers 429"""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(ChatAPIError):
    """Raised when the token is missing or rejected"""
    pass


class ChannelNotFoundError(ChatAPIError):
    """Raised when a channel does not exist or is not visible"""
    pass


class TransientAPIError(ChatAPIError):
    """Raised on 5xx answers"""
    pass


RETRYABLE_ERRORS = (RateLimitError, TransientAPIError, aiohttp.ClientError, asyncio.TimeoutError)


# Abstract Interface
class MessageHistoryClient(ABC):
    """Paged, newest-first access to channel history"""

    @abstractmethod
    async def fetch_messages(self, channel_id: str, limit: int = 100,
                             before: Optional[str] = None) -> List[ChatMessage]:
        """Fetch up to ``limit`` messages older than ``before`` (newest first)"""
        pass


def parse_api_message(data: Dict[str, Any], default_guild_id: Optional[str] = None) -> ChatMessage:
    """Convert a REST message payload into a ``ChatMessage``"""
    author = data.get('author') or {}
    return ChatMessage(
        id=data['id'],
        channel_id=data['channel_id'],
        author_id=author.get('id', ''),
        text=data.get('content') or '',
        created_at=data['timestamp'],
        is_bot=bool(author.get('bot', False)),
        is_reply=data.get('type') == REPLY_MESSAGE_TYPE or bool(data.get('referenced_message')),
        guild_id=data.get('guild_id') or default_guild_id,
        attachment_urls=[a['url'] for a in data.get('attachments') or [] if a.get('url')],
    )


# Concrete Implementation
class RestHistoryClient(MessageHistoryClient):
    """
    History client for the Discord REST API.

    Retries rate limits, 5xx answers and connection errors with exponential
    backoff; authentication and missing-channel errors are raised at once.
    """

    def __init__(self, config: ChatConfig, session: Optional[aiohttp.ClientSession] = None):
        if not config.token and session is None:
            raise AuthenticationError("A bot token is required for REST history access")
        self.config = config
        self._session = session
        self._owns_session = session is None
        self.stats = {
            'requests': 0,
            'retries': 0,
            'messages_fetched': 0,
        }

    async def __aenter__(self) -> 'RestHistoryClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
        return self._session

    def _headers(self) -> Dict[str, str]:
        headers = {'User-Agent': self.config.user_agent}
        if self.config.token:
            headers['Authorization'] = f"Bot {self.config.token}"
        return headers

    async def fetch_messages(self, channel_id: str, limit: int = 100,
                             before: Optional[str] = None) -> List[ChatMessage]:
        params = {'limit': max(1, min(int(limit), MAX_PAGE_SIZE))}
        if before:
            params['before'] = str(before)
        url = f"{self.config.api_base}/channels/{channel_id}/messages"

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=1, min=self.config.retry_min_wait, max=self.config.retry_max_wait),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self.stats['retries'] += 1
                    logger.info(f"Retrying history fetch for channel {channel_id} "
                                f"(attempt {attempt.retry_state.attempt_number})")
                payload = await self._get_json(url, params)

        messages = [parse_api_message(item, self.config.guild_id) for item in payload]
        self.stats['messages_fetched'] += len(messages)
        logger.debug(f"Fetched {len(messages)} messages from channel {channel_id}")
        return messages

    async def _get_json(self, url: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.stats['requests'] += 1
        session = self._get_session()
        async with session.get(url, params=params, headers=self._headers()) as response:
            status = response.status
            if status == 429:
                body = await response.json()
                retry_after = float((body or {}).get('retry_after', 1.0))
                logger.warning(f"Rate limited on {url}, waiting {retry_after:.2f}s")
                await asyncio.sleep(min(retry_after, self.config.retry_max_wait))
                raise RateLimitError(f"Rate limited on {url}", retry_after=retry_after)
            if status in (401, 403):
                raise AuthenticationError(f"Access denied ({status}) for {url}")
            if status == 404:
                raise ChannelNotFoundError(f"Channel not found: {url}")
            if status >= 500:
                raise TransientAPIError(f"Server error {status} for {url}")
            if status >= 400:
                raise ChatAPIError(f"Unexpected status {status} for {url}")
            return await response.json()


class ChatConfigFactory:
    """Factory for creating chat configuration objects"""

    @staticmethod
    def from_environment(env_path: Optional[Path] = None, require_token: bool = True) -> ChatConfig:
        """
        Load chat configuration from environment variables

        Args:
            env_path: Path to .env file (optional)
            require_token: Raise when TICKERWISDOM_BOT_TOKEN is missing

        Returns:
            ChatConfig object

        Raises:
            AuthenticationError: If the token is required but missing
        """
        if env_path:
            load_dotenv(dotenv_path=env_path)
        else:
            load_dotenv()

        token = os.getenv("TICKERWISDOM_BOT_TOKEN")
        if require_token and not token:
            raise AuthenticationError(
                "Bot token not found in environment variables. "
                "Please set TICKERWISDOM_BOT_TOKEN"
            )

        return ChatConfig(
            token=token,
            guild_id=os.getenv("TICKERWISDOM_GUILD_ID") or None,
            api_base=os.getenv("TICKERWISDOM_API_BASE", "https://discord.com/api/v10"),
            platform_url=os.getenv("TICKERWISDOM_PLATFORM_URL", "https://discord.com"),
            timeout=int(os.getenv("TICKERWISDOM_TIMEOUT", "30")),
            max_retries=int(os.getenv("TICKERWISDOM_MAX_RETRIES", "3")),
        )
