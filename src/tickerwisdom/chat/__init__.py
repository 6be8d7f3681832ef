from .state import ChatConfig, ChatMessage, ExtractedUrls
from .urls import AttachmentUrlExtractor, UrlExtractor, build_message_url
from .processor import MessageTextProcessor, TextCleaningConfig
from .client import (
    AuthenticationError,
    ChannelNotFoundError,
    ChatAPIError,
    ChatConfigFactory,
    MessageHistoryClient,
    RateLimitError,
    RestHistoryClient,
    TransientAPIError,
    parse_api_message,
)

__all__ = [
    # Models
    'ChatMessage',
    'ExtractedUrls',
    'ChatConfig',

    # Text and URLs
    'MessageTextProcessor',
    'TextCleaningConfig',
    'UrlExtractor',
    'AttachmentUrlExtractor',
    'build_message_url',

    # History client
    'MessageHistoryClient',
    'RestHistoryClient',
    'ChatConfigFactory',
    'parse_api_message',

    # Errors
    'ChatAPIError',
    'RateLimitError',
    'AuthenticationError',
    'ChannelNotFoundError',
    'TransientAPIError',
]
