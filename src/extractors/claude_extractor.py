#!/usr/bin/env python3
"""
Claude Extractor for Chat Export
Locates conversation messages on claude.ai pages.
"""

from typing import List, Optional
from bs4 import BeautifulSoup, Tag
import logging

from models import MessageRole
from extractors.base_extractor import BaseExtractor
from extractors.common_extractor import RawBlock, document_order

logger = logging.getLogger(__name__)

class ClaudeExtractor(BaseExtractor):
    """Adapter for Claude conversations"""

    CONTAINER_SELECTORS = [
        'div.h-screen.flex.flex-col.overflow-hidden',
        'main',
        '[role="main"]',
        '[class*="conversation"]',
    ]

    RESPONSE_SELECTOR = 'div.font-claude-response'
    USER_INPUT_SELECTOR = 'p.whitespace-pre-wrap.break-words'

    DATA_ATTRIBUTE_SELECTOR = '[data-testid*="message"], [data-message-id], [data-claude-message]'
    AUTHOR_INDICATOR_SELECTOR = '[data-testid*="author"], [class*="author"], [class*="sender"]'

    CLASS_NAME_SELECTORS = [
        '[class*="message"]',
        '[class*="Message"]',
        '[class*="chat"]',
        '[class*="conversation"]',
        '[class*="response"]',
    ]

    EXCLUDED_ANCESTORS = {'button', 'nav', 'header', 'footer', 'aside'}

    def fallback_chain(self):
        return [self._response_blocks, self._data_attribute_blocks, self._class_name_blocks]

    def _find_container(self, soup: BeautifulSoup) -> Tag:
        for selector in self.CONTAINER_SELECTORS:
            container = soup.select_one(selector)
            if container:
                logger.debug(f"Found conversation container with selector: {selector}")
                return container
        return soup

    def _response_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """
        Current markup: Claude replies in div.font-claude-response, user
        prompts in p.whitespace-pre-wrap.break-words, merged in document order
        """
        container = self._find_container(soup)
        candidates = document_order(
            container.select(f"{self.RESPONSE_SELECTOR}, {self.USER_INPUT_SELECTOR}")
        )

        blocks = []
        for element in candidates:
            if not self._has_text(element):
                continue
            if 'font-claude-response' in self._class_string(element):
                role = MessageRole.ASSISTANT
            else:
                role = MessageRole.USER
            blocks.append(RawBlock(role_hint=role, fragment=element))

        return blocks

    def _data_attribute_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """Legacy markup: message wrappers identified by data attributes"""
        elements = [el for el in document_order(soup.select(self.DATA_ATTRIBUTE_SELECTOR))
                    if self._has_text(el)]
        return [
            RawBlock(role_hint=self._determine_message_role(el, index), fragment=el)
            for index, el in enumerate(elements)
        ]

    def _class_name_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """Oldest markup: message-like class names, first matching selector wins"""
        elements = []
        for selector in self.CLASS_NAME_SELECTORS:
            elements = soup.select(selector)
            if elements:
                logger.debug(f"Selector {selector} found {len(elements)} elements")
                break

        filtered = []
        for el in document_order(elements):
            text = el.get_text().strip()
            if not 10 < len(text) < 20000:
                continue
            if any(parent.name in self.EXCLUDED_ANCESTORS for parent in el.parents):
                continue
            filtered.append(el)

        return [
            RawBlock(role_hint=self._determine_message_role(el, index), fragment=el)
            for index, el in enumerate(filtered)
        ]

    def _determine_message_role(self, element: Tag, index: int) -> MessageRole:
        """
        Determine message role based on element context

        Args:
            element: BeautifulSoup element
            index: Position among the located blocks

        Returns:
            MessageRole
        """
        # Explicit author indicator inside the block
        indicator = element.select_one(self.AUTHOR_INDICATOR_SELECTOR)
        if indicator:
            author_text = indicator.get_text().strip()
            if 'Claude' in author_text or 'Assistant' in author_text:
                return MessageRole.ASSISTANT
            return MessageRole.USER

        role = self._role_from_classes(element)
        if role:
            return role

        return self._alternating_role(index)

    def _role_from_classes(self, element: Tag) -> Optional[MessageRole]:
        class_str = self._class_string(element)
        if any(indicator in class_str for indicator in ['claude-response', 'font-claude', 'assistant']):
            return MessageRole.ASSISTANT
        if any(indicator in class_str for indicator in ['user-input', 'user', 'human']):
            return MessageRole.USER
        return None
