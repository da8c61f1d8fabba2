#!/usr/bin/env python3
"""
Conversation Uploader for Chat Export
Hands a finished conversation to an external conversation-management service.
"""

from typing import Dict, Any, List, Optional
import logging
import requests

from models import Conversation

logger = logging.getLogger(__name__)

class UploadError(Exception):
    """Raised when the receiving service rejects or cannot be reached"""

def build_record(conversation: Conversation, model: Optional[str] = None,
                 tags: Optional[List[str]] = None, token_count: Optional[int] = None) -> Dict[str, Any]:
    """
    Build the record accepted by the conversation service

    Args:
        conversation: Exported conversation
        model: Optional model name
        tags: Optional tag list
        token_count: Optional token count

    Returns:
        Record with title and messages; optional fields only when given
    """
    timestamp = conversation.captured_at.isoformat()
    record = {
        'title': conversation.title,
        'messages': [
            {
                'role': message.role.value,
                'content': message.content.text,
                'timestamp': timestamp,
            }
            for message in conversation.messages
        ],
    }

    if token_count is not None:
        record['tokenCount'] = token_count
    if model:
        record['model'] = model
    if tags:
        record['tags'] = list(tags)

    return record

class ConversationUploader:
    """POSTs conversation records to the configured endpoint"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        upload = self.config.get('upload', {})
        self.endpoint = upload.get('endpoint') or ''
        self.token = upload.get('token') or ''
        self.timeout = self.config.get('fetch', {}).get('timeout', 30)
        self.session = requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.endpoint)

    def submit(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a record

        Args:
            record: Output of build_record

        Returns:
            The service's JSON reply (empty dict when it sends none)

        Raises:
            UploadError: If no endpoint is configured or the request fails
        """
        if not self.configured:
            raise UploadError("No upload endpoint configured (upload.endpoint)")

        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"

        try:
            response = self.session.post(self.endpoint, json=record, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise UploadError(f"Upload to {self.endpoint} failed: {e}") from e

        logger.info(f"Uploaded '{record.get('title')}' to {self.endpoint}")
        try:
            return response.json()
        except ValueError:
            return {}
