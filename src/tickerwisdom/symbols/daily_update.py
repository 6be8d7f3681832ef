import logging
import re

logger = logging.getLogger(__name__)

HEBREW_SECTION_HEADER = re.compile(r'❗\s*[\u0590-\u05FF]')
HEBREW_TOP_PICKS = re.compile(r'❕\s*טופ פיקס')
LONG_SHORT_LINE = re.compile(r'📈\s*long\s*[:：]|📉\s*short\s*[:：]', re.IGNORECASE)
REMINDER_BULLET = '🔹'
SHORT_SIDE_SECTION = re.compile(r'🔻\s*שורט סייד')


def is_daily_update(text: str, min_sections: int = 3, min_reminders: int = 2) -> bool:
    """
    Recognise the structured Hebrew daily update.

    All of the following must be present: ``min_sections`` ❗-headed Hebrew
    sections, the ❕ top-picks marker, an emoji long/short line,
    ``min_reminders`` 🔹 bullets and the 🔻 short-side section.
    """
    if not text:
        return False

    sections = len(HEBREW_SECTION_HEADER.findall(text))
    if sections < min_sections:
        logger.debug(f"Hebrew sections found: {sections}, need {min_sections}")
        return False
    if not HEBREW_TOP_PICKS.search(text):
        logger.debug("No Hebrew top picks section found")
        return False
    if not LONG_SHORT_LINE.search(text):
        logger.debug("No long/short lines found")
        return False
    if text.count(REMINDER_BULLET) < min_reminders:
        logger.debug(f"Reminder bullets found: {text.count(REMINDER_BULLET)}, need {min_reminders}")
        return False
    if not SHORT_SIDE_SECTION.search(text):
        logger.debug("No short side section found")
        return False

    logger.info("Message identified as daily update")
    return True
