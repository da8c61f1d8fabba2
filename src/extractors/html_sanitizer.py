#!/usr/bin/env python3
"""
HTML Sanitizer for Chat Export
Strips interactive and decorative nodes from a message fragment and returns
its dual text/markup representation.
"""

import copy
import logging

from bs4 import Tag

from models import MessageContent
from extractors.text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

# Controls, icons, images and copy/edit affordances
REMOVABLE_SELECTOR = ', '.join([
    'button', 'svg', 'img', 'input', 'textarea',
    '.copy', '.edit', '.icon',
    '[class*="icon"]', '[class*="button"]',
])

def sanitize(fragment: Tag) -> MessageContent:
    """
    Produce {text, markup} for a message fragment without touching the page

    Never raises: on failure the text degrades to the fragment's plain text
    and the markup is empty.

    Args:
        fragment: Live page element

    Returns:
        MessageContent
    """
    try:
        clone = copy.copy(fragment)

        for element in clone.select(REMOVABLE_SELECTOR):
            if not element.decomposed:
                element.decompose()

        text = TextNormalizer.strip_invisible(clone.get_text()).strip()
        markup = clone.decode_contents().strip()

        return MessageContent(text=text, markup=markup)

    except Exception as e:
        logger.warning(f"Markup cleanup failed, falling back to plain text: {e}")
        return MessageContent(text=_plain_text(fragment), markup="")

def _plain_text(fragment) -> str:
    try:
        return fragment.get_text().strip()
    except Exception as e:
        logger.debug(f"Plain text fallback failed: {e}")
        return ""
