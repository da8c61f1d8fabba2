#!/usr/bin/env python3
"""
Page model for Chat Export
A loaded chat page: its parsed document, current location, and the click
handlers attached to injected elements.
"""

from typing import Callable, Dict, Any, Optional
from pathlib import Path
import requests
from bs4 import BeautifulSoup, Tag
import logging
import time
import random

logger = logging.getLogger(__name__)

class Page:
    """A single-page-application document as seen by a content script"""

    def __init__(self, html: str, url: str = ""):
        self.document = BeautifulSoup(html or "", 'html.parser')
        self.location = url
        self._click_handlers: Dict[str, Callable[[], Any]] = {}

    @property
    def title(self) -> str:
        element = self.document.find('title')
        return element.get_text().strip() if element else ""

    @property
    def body(self) -> Tag:
        if self.document.body is None:
            self.document.append(self.document.new_tag('body'))
        return self.document.body

    def get_element_by_id(self, element_id: str) -> Optional[Tag]:
        return self.document.find(id=element_id)

    def add_click_listener(self, element_id: str, handler: Callable[[], Any]) -> None:
        self._click_handlers[element_id] = handler

    def click(self, element_id: str) -> Any:
        """
        Dispatch a click on an element

        Returns:
            The handler's return value, or None if the element or handler is missing
        """
        if self.get_element_by_id(element_id) is None:
            logger.debug(f"Click on missing element #{element_id} ignored")
            return None
        handler = self._click_handlers.get(element_id)
        return handler() if handler else None

    def navigate(self, url: str, html: Optional[str] = None) -> None:
        """
        Client-side navigation: the location changes and, when html is given,
        the rendered document is replaced. No load event fires.
        """
        self.location = url
        if html is not None:
            self.document = BeautifulSoup(html, 'html.parser')
            self._click_handlers.clear()

class PageLoader:
    """Loads pages from saved HTML files or live URLs"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.session = requests.Session()

        # Browser-like headers
        self.session.headers.update({
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        })

    def load(self, source: str, url: Optional[str] = None) -> Optional[Page]:
        """
        Load a page from a file path or URL

        Args:
            source: Saved HTML file or http(s) URL
            url: Location to report for a file source (defaults to a file:// URL)

        Returns:
            Page or None if the source could not be read
        """
        if source.startswith(('http://', 'https://')):
            html = self._fetch_html(source)
            return Page(html, url or source) if html is not None else None

        path = Path(source).expanduser()
        try:
            html = path.read_text(encoding='utf-8')
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            return None

        return Page(html, url or path.resolve().as_uri())

    def _fetch_html(self, url: str) -> Optional[str]:
        """
        Fetch HTML content from URL with retries

        Args:
            url: URL to fetch

        Returns:
            HTML content string or None if failed
        """
        max_retries = self.config.get('fetch', {}).get('max_retries', 3)
        timeout = self.config.get('fetch', {}).get('timeout', 30)

        for attempt in range(max_retries):
            try:
                logger.debug(f"Fetching HTML (attempt {attempt + 1}/{max_retries})")
                response = self.session.get(url, timeout=timeout, allow_redirects=True)
                response.raise_for_status()

                logger.debug(f"Successfully fetched HTML ({len(response.text)} characters)")
                return response.text

            except requests.RequestException as e:
                logger.warning(f"Attempt {attempt + 1} failed: {e}")
                if attempt < max_retries - 1:
                    wait_time = (2 ** attempt) + random.uniform(0, 1)
                    logger.debug(f"Waiting {wait_time:.1f} seconds before retry...")
                    time.sleep(wait_time)

        logger.error(f"Failed to fetch HTML after {max_retries} attempts")
        return None
