"""Tests for chat text cleaning and URL helpers."""

from tickerwisdom.chat.processor import MessageTextProcessor, TextCleaningConfig
from tickerwisdom.chat.urls import AttachmentUrlExtractor, UrlExtractor, build_message_url

from conftest import make_message


class TestMessageTextProcessor:

    def test_removes_urls_mentions_and_entities(self):
        processor = MessageTextProcessor()
        text = "Check <@123> https://x.com/a $AAPL  &amp; more"
        assert processor.clean_text(text) == "Check $AAPL & more"

    def test_removes_custom_emoji_and_broadcast_mentions(self):
        processor = MessageTextProcessor()
        assert processor.clean_text("@everyone <:rocket:123456> $NVDA <#987>") == "$NVDA"

    def test_keeps_line_structure(self):
        processor = MessageTextProcessor()
        assert processor.clean_text("NVDA setup\n\n\n  breakout  above\r\nresistance") == \
            "NVDA setup\nbreakout above\nresistance"

    def test_max_length(self):
        processor = MessageTextProcessor(TextCleaningConfig(max_length=10))
        assert processor.clean_text("NVDA breakout above resistance") == "NVDA br..."

    def test_disabled_steps_are_skipped(self):
        processor = MessageTextProcessor(TextCleaningConfig(remove_urls=False))
        assert "https://x.com" in processor.clean_text("see https://x.com")

    def test_empty_input(self):
        processor = MessageTextProcessor()
        assert processor.clean_text("") == ""
        assert processor.clean_text(None) == ""

    def test_headline_is_first_non_empty_line(self):
        processor = MessageTextProcessor()
        assert processor.headline("\n  \n  $NVDA setup \nmore text") == "$NVDA setup"
        assert processor.headline("") == ""


class TestUrls:

    def test_build_message_url(self):
        assert build_message_url("1", "2", "3") == "https://discord.com/channels/1/2/3"
        assert build_message_url(None, "2", "3", "https://chat.example.com/") == \
            "https://chat.example.com/channels/@me/2/3"

    def test_attachment_extractor(self):
        extractor = AttachmentUrlExtractor()
        message = make_message("$NVDA", attachment_urls=["https://cdn/a.png", "https://cdn/a.png"])

        urls = extractor.extract(message)

        assert urls.attachment_urls == ["https://cdn/a.png"]
        assert urls.has_charts
        assert isinstance(extractor, UrlExtractor)

    def test_no_attachments_means_no_charts(self):
        assert not AttachmentUrlExtractor().extract(make_message("$NVDA")).has_charts
