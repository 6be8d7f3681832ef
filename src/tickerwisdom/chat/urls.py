from typing import Optional, Protocol, runtime_checkable

from .state import ChatMessage, ExtractedUrls

DEFAULT_PLATFORM_URL = "https://discord.com"


def build_message_url(guild_id: Optional[str], channel_id: str, message_id: str,
                      platform_url: str = DEFAULT_PLATFORM_URL) -> str:
    """Canonical ``<platform>/channels/<guild>/<channel>/<message>`` link"""
    guild = guild_id if guild_id else '@me'
    return f"{platform_url.rstrip('/')}/channels/{guild}/{channel_id}/{message_id}"


@runtime_checkable
class UrlExtractor(Protocol):
    """Turns a message into chart/attachment URLs"""

    def extract(self, message: ChatMessage) -> ExtractedUrls:
        ...


class AttachmentUrlExtractor:
    """
    Forwards the attachment URLs already carried by the message.

    Chart-link detection belongs to a richer extractor supplied by the
    caller; every attachment still counts towards ``has_charts``.
    """

    def extract(self, message: ChatMessage) -> ExtractedUrls:
        attachments = list(dict.fromkeys(message.attachment_urls))
        return ExtractedUrls(attachment_urls=attachments, has_charts=bool(attachments))
