#!/usr/bin/env python3
"""
Title Heuristic for Chat Export
Derives a human-readable conversation title from the page title and the
first user message.
"""

import re
import logging
from typing import List, Optional

from models import ChatMessage, MessageRole, ServiceType

logger = logging.getLogger(__name__)

FIRST_MESSAGE_TITLE_LENGTH = 40
PLACEHOLDER_TITLE = "Conversation"

# Brand names that may trail a page title after a separator
PLATFORM_SUFFIXES = {
    ServiceType.CHATGPT: ['ChatGPT', 'OpenAI'],
    ServiceType.CLAUDE: ['Claude', 'Anthropic'],
    ServiceType.GEMINI: ['Gemini', 'Google'],
}

GENERIC_TITLES = {
    'new chat',
    'new conversation',
    '新的对话',
    '新对话',
    'nouvelle discussion',
    'neuer chat',
    'nuevo chat',
}

def strip_platform_suffix(page_title: str, service_type: ServiceType) -> str:
    """Remove trailing ' - ChatGPT', ' | Claude' style suffixes"""
    title = (page_title or '').strip()
    for name in PLATFORM_SUFFIXES[service_type]:
        title = re.sub(rf'\s*[-|\u2013]\s*{re.escape(name)}.*$', '', title, flags=re.IGNORECASE)
    return title.strip()

def is_generic_title(title: str, service_type: ServiceType) -> bool:
    lowered = title.strip().lower()
    if lowered in GENERIC_TITLES:
        return True
    return lowered in (name.lower() for name in PLATFORM_SUFFIXES[service_type])

def first_user_text(messages: List[ChatMessage]) -> Optional[str]:
    for message in messages:
        if message.role == MessageRole.USER:
            return message.content.text
    return None

def build_title(page_title: str, messages: List[ChatMessage], service_type: ServiceType) -> str:
    """
    Build the conversation title

    The page title minus its platform suffix wins unless it is empty or a
    generic placeholder; then the first user message truncated to 40
    characters is used; then a fixed placeholder. The platform display name is
    always appended, so the result is never empty.

    Args:
        page_title: document title of the page
        messages: Sanitized messages in document order
        service_type: Platform the page belongs to

    Returns:
        Title such as "My Plan - ChatGPT"
    """
    title = strip_platform_suffix(page_title, service_type)

    if not title or is_generic_title(title, service_type):
        first_user = (first_user_text(messages) or '').strip()
        title = first_user[:FIRST_MESSAGE_TITLE_LENGTH] if first_user else ''
        logger.debug(f"Page title unusable, using first user message: {title!r}")

    if not title:
        title = PLACEHOLDER_TITLE

    return f"{title} - {service_type.display_name}"
