#!/usr/bin/env python3
"""
Text Normalizer for Chat Export
Cleans invisible characters and irregular whitespace out of extracted text.
"""

import re
import unicodedata
import logging

logger = logging.getLogger(__name__)

class TextNormalizer:
    """Text cleanup shared by the sanitizer and the export formatter"""

    INVISIBLE_CHARS = {
        '\u200b': '',  # zero-width space
        '\u200c': '',  # zero-width non-joiner
        '\u200d': '',  # zero-width joiner
        '\ufeff': '',  # byte order mark
        '\x00': '',
    }

    @staticmethod
    def strip_invisible(text: str) -> str:
        """Remove zero-width characters without touching layout whitespace"""
        if not text:
            return ""
        for old, new in TextNormalizer.INVISIBLE_CHARS.items():
            text = text.replace(old, new)
        return text

    @staticmethod
    def normalize_text(text: str) -> str:
        """
        Normalize text for plain-text rendering

        Args:
            text: Extracted text

        Returns:
            NFC-normalized text with collapsed runs of spaces and blank lines
        """
        if not text:
            return ""

        text = TextNormalizer.strip_invisible(str(text))
        text = unicodedata.normalize('NFC', text)
        text = TextNormalizer._clean_control_chars(text)
        text = TextNormalizer._normalize_whitespace(text)

        return text.strip()

    @staticmethod
    def _clean_control_chars(text: str) -> str:
        """Remove control characters except common whitespace"""
        return ''.join(char for char in text
                       if unicodedata.category(char)[0] != 'C' or char in '\n\r\t')

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        """Normalize whitespace characters"""
        text = text.replace('\u00a0', ' ')
        text = re.sub(r'[\u2000-\u200a\u2028\u2029\u202f\u205f\u3000]', ' ', text)

        # Normalize line breaks
        text = re.sub(r'\r\n?', '\n', text)

        # Collapse runs of spaces and keep at most one blank line
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r' *\n *', '\n', text)
        text = re.sub(r'\n{3,}', '\n\n', text)

        return text
