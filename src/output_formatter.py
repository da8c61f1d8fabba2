#!/usr/bin/env python3
"""
Output Formatter for Chat Export
Serializes a conversation into downloadable JSON, Markdown and HTML artifacts.
"""

from typing import Dict, Any, Optional
from datetime import datetime
from html import escape
import json
import logging
import re

from markdownify import markdownify

from models import Conversation, ChatMessage, ServiceType
from extractors.text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

_EXCESSIVE_BLANK_LINES_RE = re.compile(r"\n{3,}")
_TRAILING_WHITESPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_UNSAFE_FILENAME_RE = re.compile(r"[^\w\-]+")

class ExportFormatter:
    """Formats conversations into JSON and Markdown export files"""

    DEFAULT_FILENAME_TEMPLATE = 'conversation_{platform}_{timestamp}'

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    def format_conversation(self, conversation: Conversation,
                            exported_at: Optional[datetime] = None) -> Dict[str, str]:
        """
        Format a conversation into both export forms

        Args:
            conversation: Conversation object to format
            exported_at: Export time written into the output; defaults to the
                capture time so identical input gives identical output

        Returns:
            Dictionary with 'json' and 'markdown' strings
        """
        return {
            'json': self.to_json(conversation, exported_at),
            'markdown': self.to_markdown(conversation, exported_at),
        }

    def to_json(self, conversation: Conversation, exported_at: Optional[datetime] = None) -> str:
        exported_at = exported_at or conversation.captured_at
        data = conversation.to_dict()
        data['exportedAt'] = exported_at.isoformat()
        data['totalMessages'] = conversation.get_message_count()
        return json.dumps(data, ensure_ascii=False, indent=2)

    @staticmethod
    def parse_json(text: str) -> Conversation:
        """Read a JSON export back into a conversation"""
        return Conversation.from_dict(json.loads(text))

    def to_markdown(self, conversation: Conversation, exported_at: Optional[datetime] = None) -> str:
        exported_at = exported_at or conversation.captured_at
        lines = []

        lines.extend(self._format_metadata(conversation, exported_at))
        lines.append("")

        for message in conversation.messages:
            lines.append(f"### {message.role.label}")
            lines.append("")
            lines.append(self._message_markdown(message))
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def to_html(self, conversation: Conversation, exported_at: Optional[datetime] = None) -> str:
        """Rich text export: metadata header, then each message's sanitized markup"""
        exported_at = exported_at or conversation.captured_at
        parts = [
            '<div class="conversation">',
            f"<h1>{escape(conversation.title or 'Conversation')}</h1>",
            f"<p>Platform: {escape(self._platform_name(conversation.source_platform))}</p>",
            f"<p>Exported: {exported_at.isoformat()}</p>",
        ]

        if self.config.get('output', {}).get('include_source_url', True) and conversation.url:
            url = escape(conversation.url)
            parts.append(f'<p>Source: <a href="{url}">{url}</a></p>')

        for message in conversation.messages:
            markup = message.content.markup
            if not markup.strip():
                markup = f"<p>{escape(TextNormalizer.normalize_text(message.content.text))}</p>"
            parts.append(f'<div class="message {message.role.value}">')
            parts.append(f"<h3>{message.role.label}</h3>")
            parts.append(f'<div class="message-content">{markup}</div>')
            parts.append("</div>")

        parts.append("</div>")
        return "\n".join(parts) + "\n"

    def _format_metadata(self, conversation: Conversation, exported_at: datetime) -> list:
        """
        Format conversation metadata

        Args:
            conversation: Conversation object
            exported_at: Explicit export time

        Returns:
            List of metadata lines
        """
        lines = [f"# {conversation.title}", ""]

        lines.append(f"**Platform:** {self._platform_name(conversation.source_platform)}")
        lines.append(f"**Captured:** {conversation.captured_at.isoformat()}")
        lines.append(f"**Exported:** {exported_at.isoformat()}")

        if self.config.get('output', {}).get('include_source_url', True) and conversation.url:
            lines.append(f"**Source:** {conversation.url}")

        lines.append(f"**Messages:** {conversation.get_message_count()}")
        return lines

    def _message_markdown(self, message: ChatMessage) -> str:
        """Markdown body of one message: converted markup, else normalized text"""
        markup = message.content.markup
        if markup.strip():
            try:
                md = markdownify(
                    markup,
                    heading_style="ATX",
                    bullets="-",
                    code_language_callback=_detect_lang,
                )
                md = _TRAILING_WHITESPACE_RE.sub("", md)
                md = _EXCESSIVE_BLANK_LINES_RE.sub("\n\n", md).strip()
                if md:
                    return md
            except Exception as e:
                logger.warning(f"Markdown conversion failed, using plain text: {e}")

        return TextNormalizer.normalize_text(message.content.text)

    @staticmethod
    def _platform_name(platform: str) -> str:
        try:
            return ServiceType(platform).display_name
        except ValueError:
            return platform.title() if platform else "Unknown"

    def build_filename(self, conversation: Conversation, extension: str,
                       exported_at: Optional[datetime] = None) -> str:
        """
        Build a filesystem-safe file name for an export

        Args:
            conversation: Exported conversation
            extension: 'json' or 'md'
            exported_at: Export time; defaults to the capture time

        Returns:
            Name such as conversation_chatgpt_2024-05-01T12-30-00.json
        """
        exported_at = exported_at or conversation.captured_at
        template = self.config.get('output', {}).get('filename_template', self.DEFAULT_FILENAME_TEMPLATE)

        timestamp = exported_at.replace(microsecond=0).isoformat().replace(':', '-').replace('+', '_')
        title = _UNSAFE_FILENAME_RE.sub('_', conversation.title).strip('_')[:60] or 'conversation'

        name = template.format(
            platform=conversation.source_platform or 'unknown',
            timestamp=timestamp,
            title=title,
        )
        return f"{name}.{extension}"

def _detect_lang(el: object) -> str:
    """Language hint for a <pre> block from its own or its <code> child's classes"""
    candidates = [el]
    finder = getattr(el, "find", None)
    if finder:
        candidates.append(finder("code"))

    for candidate in candidates:
        getter = getattr(candidate, "get", None)
        classes = (getter("class") if getter else None) or []
        for cls in classes:
            if isinstance(cls, str) and cls.startswith("language-"):
                return cls[len("language-"):]
    return ""
