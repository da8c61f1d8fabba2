#!/usr/bin/env python3
"""
Extraction Orchestrator for Chat Export
The content script of a chat page: injects the export control, watches for
client-side navigation, runs extraction attempts and hands the resulting
conversation to the background coordinator.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from models import (
    Action, ChatMessage, Conversation, Envelope, ExtractionState, ServiceType,
    conversation_to_payload,
)
from page import Page
from message_bus import DeliveryResult, MessageBus, Responder
from extractors.base_extractor import BaseExtractor
from extractors.extractor_factory import ExtractorFactory
from extractors.html_sanitizer import sanitize
from extractors.title_heuristic import build_title

logger = logging.getLogger(__name__)

BACKGROUND_CONTEXT = "background"
CONTROL_ID = "chat-export-btn"
CONTROL_LABEL = "Export conversation"
CONTROL_STYLE = (
    "position: fixed; top: 100px; right: 32px; z-index: 9999; "
    "border: none; border-radius: 6px; padding: 10px 18px; cursor: pointer;"
)
EMPTY_RESULT_ERROR = "No conversation content found"

class ExtractionOrchestrator:
    """
    Per-page extraction state machine

    Lifecycle: attach() when the script is injected, detach() when the page
    unloads. Each attempt runs IDLE -> PARSING -> SUCCESS|EMPTY and returns
    to IDLE. The injected control is the only page element this class writes.
    """

    def __init__(self, page: Page, service_type: ServiceType, bus: MessageBus, context_name: str,
                 config: Optional[Dict[str, Any]] = None, adapter: Optional[BaseExtractor] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.page = page
        self.service_type = service_type
        self.bus = bus
        self.context_name = context_name
        self.config = config or {}
        self.adapter = adapter or ExtractorFactory(self.config).create_extractor(service_type)
        self.clock = clock

        navigation = self.config.get('navigation', {})
        self.poll_interval = navigation.get('poll_interval', 1.0)
        self.settle_delay = navigation.get('settle_delay', 0.5)

        self.state = ExtractionState.IDLE
        self.last_outcome: Optional[ExtractionState] = None
        self._delivery_pending = False
        self._last_location = page.location
        self._watch_task: Optional[asyncio.Task] = None
        self._settle_handle: Optional[asyncio.TimerHandle] = None

    @property
    def busy(self) -> bool:
        return self.state is not ExtractionState.IDLE or self._delivery_pending

    def attach(self) -> None:
        """Start listening, insert the control and begin navigation polling"""
        self.bus.register(self.context_name, self.handle_envelope)
        self.ensure_control()
        self._last_location = self.page.location
        self._watch_task = asyncio.get_running_loop().create_task(self._watch_navigation())
        logger.debug(f"{self.service_type.display_name} content script attached as {self.context_name}")

    async def detach(self) -> None:
        """Stop timers and listeners when the page unloads"""
        self.bus.unregister(self.context_name)
        if self._settle_handle:
            self._settle_handle.cancel()
            self._settle_handle = None
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

    def ensure_control(self) -> bool:
        """
        Insert the export control unless it is already present

        Returns:
            True if a control was inserted
        """
        if self.page.get_element_by_id(CONTROL_ID) is not None:
            return False

        button = self.page.document.new_tag('button', attrs={'id': CONTROL_ID, 'style': CONTROL_STYLE})
        button.string = CONTROL_LABEL
        self.page.body.append(button)
        self.page.add_click_listener(CONTROL_ID, self.export_chat)
        logger.debug("Export control inserted")
        return True

    async def _watch_navigation(self) -> None:
        # Client-side navigation fires no load event, so poll the location
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.poll_interval)
            if self.page.location != self._last_location:
                logger.debug(f"Navigation detected: {self._last_location} -> {self.page.location}")
                self._last_location = self.page.location
                if self._settle_handle:
                    self._settle_handle.cancel()
                self._settle_handle = loop.call_later(self.settle_delay, self.ensure_control)

    def extract(self) -> Optional[Conversation]:
        """
        Run one synchronous extraction attempt

        Returns:
            Conversation, or None when the adapter found no message blocks
        """
        self.state = ExtractionState.PARSING
        try:
            result = self.adapter.locate(self.page.document)
            if not result.success:
                self.last_outcome = ExtractionState.EMPTY
                self.state = ExtractionState.EMPTY
                logger.info(EMPTY_RESULT_ERROR)
                return None

            # Document order in, document order out
            messages = [
                ChatMessage(role=block.role_hint, content=sanitize(block.fragment))
                for block in result.blocks
            ]
            title = build_title(self.page.title, messages, self.service_type)

            conversation = Conversation(
                title=title,
                messages=messages,
                source_platform=self.service_type.value,
                captured_at=self.clock(),
                url=self.page.location,
            )
            self.last_outcome = ExtractionState.SUCCESS
            self.state = ExtractionState.SUCCESS
            logger.info(f"Extracted {len(messages)} messages using {result.method}")
            return conversation
        finally:
            self.state = ExtractionState.IDLE

    def export_chat(self) -> bool:
        """
        Trigger an export (control click or inbound command)

        Returns:
            True if a conversation was handed to the background coordinator
        """
        if self.busy:
            logger.debug("Export already in progress, trigger ignored")
            return False

        try:
            conversation = self.extract()
        except Exception as e:
            logger.error(f"Extraction failed: {e}")
            self.last_outcome = None
            self.bus.send(BACKGROUND_CONTEXT, Envelope(
                action=Action.CONTENT_FAILED,
                error=str(e),
                data={'sourcePlatform': self.service_type.value},
                sender=self.context_name,
            ))
            return False

        if conversation is None:
            return False

        self._delivery_pending = True
        self.bus.send(
            BACKGROUND_CONTEXT,
            Envelope(action=Action.CONTENT_READY, data=conversation_to_payload(conversation),
                     sender=self.context_name),
            self._on_delivered,
        )
        return True

    def _on_delivered(self, result: DeliveryResult) -> None:
        self._delivery_pending = False
        if result.ok:
            logger.debug(f"{self.service_type.display_name} content sent successfully")
        else:
            logger.error(f"Failed to send {self.service_type.display_name} content: {result.error}")

    def handle_envelope(self, envelope: Envelope, responder: Responder) -> Optional[Dict[str, Any]]:
        """Listener for commands addressed to this page"""
        action = Action.parse(envelope.action)

        if action is Action.PING:
            return {'success': True, 'message': f"{self.service_type.display_name} content script ready"}

        if action is Action.EXPORT_REQUEST:
            if self.busy:
                return {'success': False, 'error': 'Export already in progress'}
            if self.export_chat():
                return {'success': True, 'message': 'Export started'}
            if self.last_outcome is ExtractionState.EMPTY:
                return {'success': False, 'error': EMPTY_RESULT_ERROR}
            return {'success': False, 'error': 'Extraction failed'}

        # Unknown actions belong to other listeners sharing the channel
        return None
