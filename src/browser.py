#!/usr/bin/env python3
"""
Browser Host for Chat Export
Owns the tabs, injects content scripts into them and opens the preview
surface. Every context it creates talks to the others only through the bus.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from models import ServiceType
from page import Page
from message_bus import MessageBus
from orchestrator import ExtractionOrchestrator
from preview import PreviewSurface
from extractors.common_extractor import ExtractionError
from extractors.service_detector import ServiceDetector

logger = logging.getLogger(__name__)

def tab_context(tab_id: int) -> str:
    return f"tab:{tab_id}"

class BrowserHost:
    """Tab registry and script injection"""

    def __init__(self, bus: MessageBus, config: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.bus = bus
        self.config = config or {}
        self.clock = clock
        self.tabs: Dict[int, Page] = {}
        self.content_scripts: Dict[int, ExtractionOrchestrator] = {}
        self.active_tab_id: Optional[int] = None
        self.preview: Optional[PreviewSurface] = None
        self._next_tab_id = 1

    def open_tab(self, page: Page, active: bool = True) -> int:
        tab_id = self._next_tab_id
        self._next_tab_id += 1
        self.tabs[tab_id] = page
        if active:
            self.active_tab_id = tab_id
        logger.debug(f"Opened tab {tab_id} at {page.location}")
        return tab_id

    async def close_tab(self, tab_id: int) -> None:
        """Unload the page, tearing down its content script"""
        script = self.content_scripts.pop(tab_id, None)
        if script:
            await script.detach()
        self.tabs.pop(tab_id, None)
        if self.active_tab_id == tab_id:
            self.active_tab_id = None

    def query_active_tab(self) -> Optional[int]:
        return self.active_tab_id

    def inject_content_script(self, tab_id: int, platform: Optional[str] = None) -> ExtractionOrchestrator:
        """
        Inject the platform content script into a tab (once per page)

        Args:
            tab_id: Target tab
            platform: Platform name; detected from the tab URL when omitted

        Returns:
            The tab's orchestrator

        Raises:
            ExtractionError: If the tab does not exist or no adapter matches
        """
        if tab_id in self.content_scripts:
            return self.content_scripts[tab_id]

        page = self.tabs.get(tab_id)
        if page is None:
            raise ExtractionError(f"No tab with id {tab_id}", error_type="injection")

        platform = platform or ServiceDetector().detect_service(page.location)
        if not platform:
            raise ExtractionError(f"No adapter for {page.location}", error_type="injection")

        try:
            service_type = ServiceType(platform.lower())
        except ValueError:
            raise ExtractionError(f"Unsupported service: {platform}", error_type="injection", service=platform)

        script = ExtractionOrchestrator(page, service_type, self.bus, tab_context(tab_id),
                                        config=self.config, clock=self.clock)
        script.attach()
        self.content_scripts[tab_id] = script
        logger.info(f"Injected {service_type.value} content script into tab {tab_id}")
        return script

    def open_preview(self) -> PreviewSurface:
        """Open the preview surface, reusing the one already open"""
        if self.preview is None or not self.bus.is_registered(self.preview.context_name):
            self.preview = PreviewSurface(self.bus, self.config)
            self.preview.start()
        return self.preview
