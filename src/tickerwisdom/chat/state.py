from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    """One inbound chat message as delivered by the message source"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description='Platform message id (snowflake).')
    channel_id: str = Field(description='Channel the message was posted in.')
    author_id: str = Field(description='Author account id.')
    text: str = Field(description='Raw message content.', default='')
    created_at: datetime = Field(description='Creation time; naive values are taken as UTC.')
    is_bot: bool = Field(description='Whether the author is a bot account.', default=False)
    is_reply: bool = Field(description='Whether the message replies to another message.', default=False)
    guild_id: Optional[str] = Field(description='Server id, None for direct messages.', default=None)
    attachment_urls: List[str] = Field(
        description='URLs of files attached to the message.',
        default_factory=list
    )

    @field_validator('id', 'channel_id', 'author_id', 'guild_id', mode='before')
    @classmethod
    def _coerce_ids(cls, value):
        return None if value is None else str(value)

    @field_validator('text', mode='before')
    @classmethod
    def _coerce_text(cls, value):
        return value or ''

    @field_validator('created_at')
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ExtractedUrls(BaseModel):
    """Output of the URL/attachment extractor, consumed as opaque fields"""
    model_config = ConfigDict(frozen=True)

    chart_urls: List[str] = Field(description='Links to chart providers.', default_factory=list)
    attachment_urls: List[str] = Field(description='Attached files and images.', default_factory=list)
    has_charts: bool = Field(description='Whether any chart link or attachment is present.', default=False)


@dataclass
class ChatConfig:
    """Configuration for the chat platform REST client"""
    token: Optional[str] = None
    guild_id: Optional[str] = None
    api_base: str = "https://discord.com/api/v10"
    platform_url: str = "https://discord.com"
    user_agent: str = "tickerwisdom (https://github.com, 1.0)"
    timeout: int = 30
    max_retries: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0

    def __post_init__(self):
        if self.guild_id is not None:
            self.guild_id = str(self.guild_id)
        self.api_base = self.api_base.rstrip('/')
        self.platform_url = self.platform_url.rstrip('/')
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
