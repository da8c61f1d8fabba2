#!/usr/bin/env python3
"""
Base Extractor for Chat Export
Abstract base class for all site adapters.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Dict, Any, Optional
from bs4 import BeautifulSoup, Tag
import logging

from models import MessageRole, ServiceType
from extractors.common_extractor import AdapterResult, RawBlock

logger = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup], List[RawBlock]]

class BaseExtractor(ABC):
    """Abstract base class for all site adapters"""

    def __init__(self, service_type: ServiceType, config: Optional[Dict[str, Any]] = None):
        self.service_type = service_type
        self.config = config or {}

    def locate(self, soup: BeautifulSoup) -> AdapterResult:
        """
        Locate message blocks in a live page

        Tries each markup convention in order and returns the first one that
        yields at least one block. Zero blocks is a normal empty result.

        Args:
            soup: The page document

        Returns:
            AdapterResult with blocks in document order
        """
        for strategy in self.fallback_chain():
            name = strategy.__name__.lstrip('_')
            try:
                blocks = strategy(soup)
            except Exception as e:
                logger.warning(f"{self.service_type.value} strategy {name} failed: {e}")
                continue

            logger.debug(f"{self.service_type.value} strategy {name} found {len(blocks)} blocks")
            if blocks:
                return AdapterResult(blocks, method=name)

        logger.info(f"No message blocks found for {self.service_type.value}")
        return AdapterResult([], method=None)

    @abstractmethod
    def fallback_chain(self) -> List[Strategy]:
        """
        Ordered markup conventions, current convention first

        Returns:
            List of callables taking the document and returning RawBlocks
        """
        pass

    @staticmethod
    def _alternating_role(index: int) -> MessageRole:
        """
        Positional role for blocks without any role signal

        Assumes strict user/assistant alternation starting with the user.
        Two consecutive same-role blocks are mislabelled; this is not validated.
        """
        return MessageRole.USER if index % 2 == 0 else MessageRole.ASSISTANT

    @staticmethod
    def _class_string(element: Tag) -> str:
        classes = element.get('class') or []
        if isinstance(classes, str):
            return classes.lower()
        return ' '.join(classes).lower()

    @staticmethod
    def _has_text(element: Tag) -> bool:
        return bool(element.get_text(strip=True))
