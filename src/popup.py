#!/usr/bin/env python3
"""
Popup Control Surface for Chat Export
The user-facing export button outside the page.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from models import Action, Envelope
from message_bus import DeliveryError, DeliveryTimeout, MessageBus
from browser import BrowserHost, tab_context
from background import BACKGROUND_CONTEXT
from extractors.common_extractor import ExtractionError

logger = logging.getLogger(__name__)

POPUP_CONTEXT = "popup"
PING_TIMEOUT = 1.0

class ControlSurface:
    """Drives an export of the active tab and reports a status line"""

    def __init__(self, bus: MessageBus, browser: BrowserHost, config: Optional[Dict[str, Any]] = None):
        self.bus = bus
        self.browser = browser
        self.config = config or {}

        messaging = self.config.get('messaging', {})
        self.request_timeout = messaging.get('request_timeout', 10.0)
        self.injection_delay = messaging.get('injection_delay', 0.5)

    async def export_active_tab(self, platform: Optional[str] = None) -> Dict[str, Any]:
        """
        Export the conversation open in the active tab

        Args:
            platform: Platform name; detected from the tab URL when omitted

        Returns:
            Status dictionary with 'success' and a user-facing 'message'
        """
        tab_id = self.browser.query_active_tab()
        if tab_id is None:
            return {'success': False, 'message': 'No active tab found'}

        if not await self._content_script_ready(tab_id):
            logger.info(f"Content script not ready in tab {tab_id}, injecting")
            try:
                self.browser.inject_content_script(tab_id, platform)
            except ExtractionError as e:
                return {'success': False, 'message': f"Export failed: {e}"}
            await asyncio.sleep(self.injection_delay)

        try:
            reply = await self.bus.request(
                BACKGROUND_CONTEXT,
                Envelope(action=Action.EXPORT_REQUEST, data={'tabId': tab_id, 'platform': platform},
                         sender=POPUP_CONTEXT),
                timeout=self.request_timeout,
            )
        except DeliveryTimeout:
            logger.error("Export request timed out")
            return {'success': False, 'message': 'Export timed out, please refresh the page and try again'}
        except DeliveryError as e:
            return {'success': False, 'message': f"Export failed: {e}"}

        if reply and reply.get('success'):
            return {'success': True, 'message': 'Export started, opening preview...'}
        error = (reply or {}).get('error') or 'Unknown error'
        return {'success': False, 'message': f"Export failed: {error}"}

    async def _content_script_ready(self, tab_id: int) -> bool:
        try:
            reply = await self.bus.request(
                tab_context(tab_id),
                Envelope(action=Action.PING, sender=POPUP_CONTEXT),
                timeout=PING_TIMEOUT,
            )
        except DeliveryError:
            return False
        return bool(reply and reply.get('success'))
