#!/usr/bin/env python3
"""
ChatGPT Extractor for Chat Export
Locates conversation turns on chat.openai.com / chatgpt.com pages.
"""

from typing import List
from bs4 import BeautifulSoup, Tag
import logging

from models import MessageRole
from extractors.base_extractor import BaseExtractor
from extractors.common_extractor import RawBlock

logger = logging.getLogger(__name__)

class ChatGPTExtractor(BaseExtractor):
    """Adapter for ChatGPT conversations"""

    def fallback_chain(self):
        return [self._author_role_blocks, self._conversation_turns]

    def _author_role_blocks(self, soup: BeautifulSoup) -> List[RawBlock]:
        """
        Current markup: blocks under <main> carrying data-message-author-role

        The role comes straight from the attribute; the content is the
        rendered markdown container when present, otherwise the block itself.
        """
        main = soup.find('main')
        if not main:
            return []

        blocks = []
        for element in main.select('div[data-message-author-role]'):
            role = self._map_role(element.get('data-message-author-role'))
            content = element.select_one('.markdown') or element
            blocks.append(RawBlock(role_hint=role, fragment=content))

        return blocks

    def _conversation_turns(self, soup: BeautifulSoup) -> List[RawBlock]:
        """
        Legacy markup: [data-testid="conversation-turn"] wrappers

        No role attribute exists here; a turn whose header mentions ChatGPT is
        the assistant, anything else is the user.
        """
        blocks = []
        for element in soup.select('[data-testid="conversation-turn"]'):
            role = self._legacy_role(element)
            content = element.select_one('div.markdown, .whitespace-pre-wrap') or element
            blocks.append(RawBlock(role_hint=role, fragment=content))

        return blocks

    def _legacy_role(self, element: Tag) -> MessageRole:
        header = element.select_one('div.items-start')
        if header and 'ChatGPT' in header.get_text():
            return MessageRole.ASSISTANT
        return MessageRole.USER

    @staticmethod
    def _map_role(role_attr) -> MessageRole:
        role_attr = (role_attr or '').lower()
        if role_attr in ['user', 'human']:
            return MessageRole.USER
        elif role_attr == 'system':
            return MessageRole.SYSTEM
        return MessageRole.ASSISTANT
