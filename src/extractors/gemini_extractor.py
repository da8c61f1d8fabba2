#!/usr/bin/env python3
"""
Gemini Extractor for Chat Export
Locates conversation messages on gemini.google.com pages.
"""

from typing import List, Optional
from bs4 import BeautifulSoup, Tag
import soupsieve as sv
import logging
import re

from models import MessageRole
from extractors.base_extractor import BaseExtractor
from extractors.common_extractor import RawBlock, document_order

logger = logging.getLogger(__name__)

class GeminiExtractor(BaseExtractor):
    """Adapter for Gemini conversations"""

    CONTAINER_SELECTOR = 'chat-window, [role="main"], main'

    USER_SELECTOR = ', '.join([
        '[data-message-type="USER"]', '[data-role="user"]', '.user-message', '.human-message',
        '[class*="user"]', '[class*="human"]', '[data-author="user"]', '[data-type="user"]',
        '[data-message-author-role="user"]', '[data-author-role="user"]',
    ])
    MODEL_SELECTOR = ', '.join([
        '[data-message-type="MODEL"]', '[data-role="model"]', '.model-message', '.assistant-message',
        '[class*="model"]', '[class*="assistant"]', '[data-author="model"]', '[data-type="model"]',
        '[data-message-author-role="model"]', '[data-author-role="model"]',
        '[data-message-author-role="assistant"]', '[data-author-role="assistant"]',
    ])

    MESSAGE_CONTAINER_SELECTORS = [
        'message-container',
        'conversation-turn',
        '[data-testid*="message"]',
        '[data-testid*="turn"]',
        '[data-message-type]',
        '[role*="message"]',
        '.message',
        '.chat-message',
        '[role="article"]',
    ]

    UI_PATTERNS = [
        'toolbar', 'header', 'footer', 'nav', 'menu', 'sidebar', 'btn', 'button',
        'icon', 'avatar', 'profile', 'settings', 'controls', 'actions',
        'tooltip', 'dropdown', 'modal', 'popup', 'overlay',
    ]
    HISTORY_PATTERNS = ['history', 'sidebar', 'nav', 'menu', 'list', 'recent']
    HISTORY_TEXTS = re.compile(r'New chat|Yesterday|\d+ days ago')
    UI_TEXTS = {
        'send', 'clear', 'copy', 'edit', 'regenerate', 'like', 'dislike',
        'share', 'save', 'delete', 'export', 'new chat', 'history', 'settings',
        'login', 'sign up', 'logout', 'more', 'options', 'help',
    }
    UI_TAGS = {'textarea', 'input', 'button', 'svg', 'img'}
    SYMBOLS_ONLY = re.compile(r'^[\d\s\-_.,!@#$%^&*()+=\[\]{}|;\':"<>?/~`]+$')
    TIMESTAMP = re.compile(r'^\d{1,2}:\d{2}(:\d{2})?\s*(AM|PM)?$', re.IGNORECASE)
    DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')
    FINGERPRINT_LENGTH = 100

    def fallback_chain(self):
        return [self._role_selector_blocks, self._message_container_blocks]

    def _find_container(self, soup: BeautifulSoup) -> Tag:
        return soup.select_one(self.CONTAINER_SELECTOR) or soup

    def _role_selector_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """
        Current markup: user and model messages flagged by role-bearing
        attributes or class names, merged in document order
        """
        container = self._find_container(soup)
        candidates = document_order(
            [el for el in container.select(f"{self.USER_SELECTOR}, {self.MODEL_SELECTOR}")
             if not self._is_noise(el)]
        )

        blocks = []
        for element in candidates:
            if len(element.get_text().strip()) <= 10:
                continue
            role = MessageRole.USER if sv.match(self.USER_SELECTOR, element) else MessageRole.ASSISTANT
            blocks.append(RawBlock(role_hint=role, fragment=element))

        return self._deduplicate(blocks)

    def _message_container_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """Legacy markup: generic message containers, first productive selector wins"""
        container = self._find_container(soup)

        for selector in self.MESSAGE_CONTAINER_SELECTORS:
            elements = [
                el for el in document_order(container.select(selector))
                if not self._is_noise(el) and len(el.get_text().strip()) > 20
            ]
            if elements:
                logger.debug(f"Found {len(elements)} elements with selector: {selector}")
                return self._deduplicate([
                    RawBlock(role_hint=self._determine_message_role(el, index), fragment=el)
                    for index, el in enumerate(elements)
                ])

        return []

    def _determine_message_role(self, element: Tag, index: int) -> MessageRole:
        """
        Determine message role based on element context

        Args:
            element: BeautifulSoup element
            index: Position among the located blocks

        Returns:
            MessageRole
        """
        role = self._role_from_attributes(element)
        if role:
            return role
        return self._alternating_role(index)

    def _role_from_attributes(self, element: Tag) -> Optional[MessageRole]:
        class_str = self._class_string(element)
        if 'user' in class_str or 'human' in class_str:
            return MessageRole.USER
        if 'model' in class_str or 'assistant' in class_str:
            return MessageRole.ASSISTANT

        for attr in ['data-message-type', 'data-role', 'data-author', 'data-type', 'data-message-author']:
            value = (element.get(attr) or '').lower()
            if 'user' in value or 'human' in value:
                return MessageRole.USER
            if 'model' in value or 'assistant' in value:
                return MessageRole.ASSISTANT

        return None

    def _is_noise(self, element: Tag) -> bool:
        """Filter input boxes, toolbars, avatars and other page chrome"""
        if element.name in self.UI_TAGS or element.get('contenteditable') == 'true':
            return True

        class_str = self._class_string(element)
        element_id = (element.get('id') or '').lower()
        if any(pattern in class_str or pattern in element_id for pattern in self.UI_PATTERNS):
            return True

        text = element.get_text().strip()
        if not text or text.lower() in self.UI_TEXTS:
            return True
        if self.SYMBOLS_ONLY.match(text) or self.TIMESTAMP.match(text) or self.DATE.match(text):
            return True

        return self._is_history_entry(class_str, element_id, text)

    def _is_history_entry(self, class_str: str, element_id: str, text: str) -> bool:
        """Sidebar session list items: history-like names or short relative-date labels"""
        if any(pattern in class_str or pattern in element_id for pattern in self.HISTORY_PATTERNS):
            return True
        return len(text) < 100 and bool(self.HISTORY_TEXTS.search(text))

    def _deduplicate(self, blocks: List[RawBlock]) -> List[RawBlock]:
        """Keep the first of blocks whose leading text matches, whitespace collapsed"""
        seen = set()
        unique = []
        for block in blocks:
            text = block.fragment.get_text().strip()[:self.FINGERPRINT_LENGTH]
            fingerprint = ' '.join(text.split())
            if fingerprint in seen:
                logger.debug(f"Dropping repeated block: {fingerprint[:40]}")
                continue
            seen.add(fingerprint)
            unique.append(block)
        return unique
