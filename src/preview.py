#!/usr/bin/env python3
"""
Preview Surface for Chat Export
Displays the conversation handed over by the background coordinator and
writes the export files.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from models import Action, Conversation, Envelope
from message_bus import DeliveryResult, MessageBus, Responder
from output_formatter import ExportFormatter

logger = logging.getLogger(__name__)

PREVIEW_CONTEXT = "preview"
BACKGROUND_CONTEXT = "background"

FORMAT_EXTENSIONS = {
    'json': 'json',
    'markdown': 'md',
    'html': 'html',
}

class PreviewSurface:
    """The user-facing preview page"""

    def __init__(self, bus: MessageBus, config: Optional[Dict[str, Any]] = None):
        self.bus = bus
        self.config = config or {}
        self.context_name = PREVIEW_CONTEXT
        self.formatter = ExportFormatter(self.config)
        self.conversation: Optional[Conversation] = None
        self.conversation_key: Optional[str] = None
        self._received = asyncio.Event()

    def start(self) -> None:
        """Register and tell the background coordinator the page is ready"""
        self.bus.register(self.context_name, self.handle_envelope)
        self.bus.send(
            BACKGROUND_CONTEXT,
            Envelope(action=Action.PREVIEW_READY, sender=self.context_name),
            self._on_ready_acknowledged,
        )

    def stop(self) -> None:
        self.bus.unregister(self.context_name)

    def _on_ready_acknowledged(self, result: DeliveryResult) -> None:
        if not result.ok:
            logger.error(f"Background did not receive ready signal: {result.error}")

    def handle_envelope(self, envelope: Envelope, responder: Responder) -> Optional[Dict[str, Any]]:
        if Action.parse(envelope.action) is not Action.PREVIEW_DATA:
            return None

        data = envelope.data or {}
        try:
            self.conversation = Conversation.from_dict(data['conversation'])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed preview data: {e}")
            return {'success': False, 'error': f"Malformed preview data: {e}"}

        self.conversation_key = data.get('key')
        self._received.set()
        logger.info(f"Preview received '{self.conversation.title}' "
                    f"({self.conversation.get_message_count()} messages)")
        return {'success': True}

    async def wait_for_conversation(self, timeout: Optional[float] = None) -> Optional[Conversation]:
        """Wait until preview data arrives; None on timeout"""
        try:
            await asyncio.wait_for(self._received.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for preview data")
            return None
        return self.conversation

    def markdown(self, exported_at: Optional[datetime] = None) -> str:
        return self.formatter.to_markdown(self._require_conversation(), exported_at)

    def json(self, exported_at: Optional[datetime] = None) -> str:
        return self.formatter.to_json(self._require_conversation(), exported_at)

    def rich_text(self, exported_at: Optional[datetime] = None) -> str:
        return self.formatter.to_html(self._require_conversation(), exported_at)

    def download(self, output_dir: Path, formats: Optional[List[str]] = None,
                 exported_at: Optional[datetime] = None) -> List[Path]:
        """
        Write the export files

        Args:
            output_dir: Destination directory (created if needed)
            formats: Any of 'json', 'markdown' and 'html'; defaults to the configured list
            exported_at: Export time recorded in the files and names

        Returns:
            Paths of the written files
        """
        conversation = self._require_conversation()
        formats = formats or self.config.get('output', {}).get('formats', ['json', 'markdown'])
        exported_at = exported_at or datetime.now()

        output_dir = Path(output_dir).expanduser()
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for fmt in formats:
            extension = FORMAT_EXTENSIONS.get(fmt)
            if extension is None:
                logger.warning(f"Unknown export format: {fmt}")
                continue

            content = self._render(fmt, exported_at)
            path = output_dir / self.formatter.build_filename(conversation, extension, exported_at)
            logger.info(f"Saving {fmt} export to {path}")
            path.write_text(content, encoding='utf-8')
            written.append(path)

        return written

    def _render(self, fmt: str, exported_at: datetime) -> str:
        if fmt == 'json':
            return self.json(exported_at)
        if fmt == 'html':
            return self.rich_text(exported_at)
        return self.markdown(exported_at)

    def _require_conversation(self) -> Conversation:
        if self.conversation is None:
            raise ValueError("No conversation data to export")
        return self.conversation
