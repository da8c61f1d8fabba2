#!/usr/bin/env python3
"""
Background Coordinator for Chat Export
Long-lived context that routes export commands to content scripts, keeps the
captured conversations and feeds the preview surface.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set

from models import (
    Action, ChatMessage, Conversation, Envelope, MessageContent, MessageRole, ServiceType,
    payload_to_conversation,
)
from message_bus import DeferredResponse, DeliveryError, DeliveryResult, MessageBus, Responder
from browser import BrowserHost, tab_context
from preview import PREVIEW_CONTEXT
from extractors.common_extractor import ExtractionError

logger = logging.getLogger(__name__)

BACKGROUND_CONTEXT = "background"

class BackgroundCoordinator:
    """Message hub between popup, content scripts and preview"""

    def __init__(self, bus: MessageBus, browser: BrowserHost, config: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.bus = bus
        self.browser = browser
        self.config = config or {}
        self.clock = clock

        messaging = self.config.get('messaging', {})
        self.request_timeout = messaging.get('request_timeout', 10.0)
        self.injection_delay = messaging.get('injection_delay', 0.5)
        self.max_stored = self.config.get('background', {}).get('max_stored_conversations', 10)

        self.conversations: "OrderedDict[str, Conversation]" = OrderedDict()
        self.latest_key: Optional[str] = None
        self._counter = 0
        self._tasks: Set[asyncio.Task] = set()

        self._handlers = {
            Action.EXPORT_REQUEST: self._handle_export_request,
            Action.CONTENT_READY: self._handle_content_ready,
            Action.CONTENT_FAILED: self._handle_content_failed,
            Action.GET_PREVIEW_DATA: self._handle_get_preview_data,
            Action.GET_CONVERSATION_DATA: self._handle_get_conversation_data,
            Action.PREVIEW_READY: self._handle_preview_ready,
            Action.PING: lambda envelope, responder: {'success': True, 'message': 'Background ready'},
            Action.KEEP_ALIVE: lambda envelope, responder: {'success': True, 'alive': True},
        }

    @property
    def latest_conversation(self) -> Optional[Conversation]:
        if self.latest_key is None:
            return None
        return self.conversations.get(self.latest_key)

    def start(self) -> None:
        self.bus.register(BACKGROUND_CONTEXT, self.handle_envelope)
        logger.debug("Background coordinator started")

    async def stop(self) -> None:
        self.bus.unregister(BACKGROUND_CONTEXT)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def handle_envelope(self, envelope: Envelope, responder: Responder) -> Any:
        action = Action.parse(envelope.action)
        handler = self._handlers.get(action)
        if handler is None:
            logger.debug(f"Ignoring unknown action: {envelope.action}")
            return None
        return handler(envelope, responder)

    def store_conversation(self, conversation: Conversation) -> str:
        """
        Keep a conversation as the latest one

        Args:
            conversation: Captured conversation

        Returns:
            Storage key (conv_<n>); the oldest entries are evicted past the limit
        """
        self._counter += 1
        key = f"conv_{self._counter}"
        self.conversations[key] = conversation
        self.latest_key = key

        while len(self.conversations) > self.max_stored:
            evicted, _ = self.conversations.popitem(last=False)
            logger.debug(f"Evicted stored conversation {evicted}")

        return key

    def _handle_export_request(self, envelope: Envelope, responder: Responder) -> None:
        deferred = responder.defer()
        task = asyncio.get_running_loop().create_task(self._forward_export(envelope, deferred))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _forward_export(self, envelope: Envelope, deferred: DeferredResponse) -> None:
        data = envelope.data or {}
        tab_id = data.get('tabId') or self.browser.query_active_tab()
        if tab_id is None:
            deferred.resolve({'success': False, 'error': 'No active tab'})
            return

        newly_injected = tab_id not in self.browser.content_scripts
        try:
            self.browser.inject_content_script(tab_id, data.get('platform'))
        except ExtractionError as e:
            logger.error(f"Content script injection failed: {e}")
            deferred.resolve({'success': False, 'error': str(e)})
            return

        if newly_injected:
            await asyncio.sleep(self.injection_delay)

        try:
            reply = await self.bus.request(
                tab_context(tab_id),
                Envelope(action=Action.EXPORT_REQUEST, sender=BACKGROUND_CONTEXT),
                timeout=self.request_timeout,
            )
        except DeliveryError as e:
            logger.error(f"Export request to tab {tab_id} failed: {e}")
            deferred.resolve({'success': False, 'error': str(e)})
            return

        deferred.resolve(reply)

    def _handle_content_ready(self, envelope: Envelope, responder: Responder) -> Dict[str, Any]:
        conversation = payload_to_conversation(envelope.data or {})
        logger.info(f"Received conversation '{conversation.title}' "
                    f"({conversation.get_message_count()} messages) from {envelope.sender}")
        self._publish(conversation)
        return {'success': True, 'received': True}

    def _handle_content_failed(self, envelope: Envelope, responder: Responder) -> Dict[str, Any]:
        data = envelope.data or {}
        platform = data.get('sourcePlatform', '')
        error = envelope.error or 'Unknown error'
        logger.error(f"Content script in {envelope.sender} failed: {error}")

        try:
            platform_name = ServiceType(platform).display_name
        except ValueError:
            platform_name = platform or 'Unknown'

        conversation = Conversation(
            title=f"Export failed - {platform_name}",
            messages=[ChatMessage(
                role=MessageRole.SYSTEM,
                content=MessageContent(text=f"Could not extract the conversation: {error}"),
            )],
            source_platform=platform,
            captured_at=self.clock(),
            url=data.get('url'),
        )
        self._publish(conversation)
        return {'success': True, 'received': True}

    def _handle_get_preview_data(self, envelope: Envelope, responder: Responder) -> Dict[str, Any]:
        conversation = self.latest_conversation
        if conversation is None:
            return {'success': False, 'error': 'No conversation data available'}
        return {'success': True, 'key': self.latest_key, 'conversation': conversation.to_dict()}

    def _handle_get_conversation_data(self, envelope: Envelope, responder: Responder) -> Dict[str, Any]:
        key = (envelope.data or {}).get('key') or self.latest_key
        conversation = self.conversations.get(key) if key else None
        if conversation is None:
            return {'success': False, 'error': f"No stored conversation for {key}"}
        return {'success': True, 'key': key, 'conversation': conversation.to_dict()}

    def _handle_preview_ready(self, envelope: Envelope, responder: Responder) -> Dict[str, Any]:
        if self.latest_conversation is not None:
            self._push_preview_data(envelope.sender or PREVIEW_CONTEXT)
        return {'success': True}

    def _publish(self, conversation: Conversation) -> None:
        self.store_conversation(conversation)
        preview_was_open = self.browser.preview is not None and self.bus.is_registered(PREVIEW_CONTEXT)
        self.browser.open_preview()
        # A freshly opened preview asks for its data with preview-ready
        if preview_was_open:
            self._push_preview_data(PREVIEW_CONTEXT)

    def _push_preview_data(self, recipient: str) -> None:
        self.bus.send(
            recipient,
            Envelope(
                action=Action.PREVIEW_DATA,
                data={'key': self.latest_key, 'conversation': self.latest_conversation.to_dict()},
                sender=BACKGROUND_CONTEXT,
            ),
            self._on_preview_delivered,
        )

    @staticmethod
    def _on_preview_delivered(result: DeliveryResult) -> None:
        if not result.ok:
            logger.error(f"Failed to deliver preview data: {result.error}")
