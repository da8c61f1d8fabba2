#!/usr/bin/env python3
"""
Data models for Chat Export
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum
import uuid

class MessageRole(Enum):
    """Message role enumeration"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @property
    def label(self) -> str:
        """Display label used in envelopes and exports"""
        return self.value.title()

    @classmethod
    def from_label(cls, label: Optional[str]) -> "MessageRole":
        """Map a display label or role hint back to a role (unknown labels are assistant)"""
        value = (label or "").strip().lower()
        if value in ("user", "human", "you"):
            return cls.USER
        if value == "system":
            return cls.SYSTEM
        return cls.ASSISTANT

class ServiceType(Enum):
    """Supported AI service types"""
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GEMINI = "gemini"

    @property
    def display_name(self) -> str:
        return {
            ServiceType.CHATGPT: "ChatGPT",
            ServiceType.CLAUDE: "Claude",
            ServiceType.GEMINI: "Gemini",
        }[self]

class ExtractionState(Enum):
    """Per-page extraction state"""
    IDLE = "idle"
    PARSING = "parsing"
    SUCCESS = "success"
    EMPTY = "empty"

class Action(Enum):
    """Envelope actions understood by the execution contexts"""
    EXPORT_REQUEST = "export-request"
    CONTENT_READY = "content-ready"
    CONTENT_FAILED = "content-failed"
    PING = "ping"
    KEEP_ALIVE = "keep-alive"
    PREVIEW_READY = "preview-ready"
    PREVIEW_DATA = "preview-data"
    GET_PREVIEW_DATA = "get-preview-data"
    GET_CONVERSATION_DATA = "get-conversation-data"

    @classmethod
    def parse(cls, value: Any) -> Optional["Action"]:
        """Return the matching action, or None for unrecognized tags"""
        try:
            return cls(value)
        except ValueError:
            return None

@dataclass
class MessageContent:
    """Dual plain-text / sanitized-markup representation"""
    text: str = ""
    markup: str = ""

@dataclass
class ChatMessage:
    """Represents a single chat message"""
    role: MessageRole
    content: MessageContent

    def __post_init__(self):
        if isinstance(self.role, str):
            self.role = MessageRole(self.role.lower())
        if isinstance(self.content, str):
            self.content = MessageContent(text=self.content)
        elif isinstance(self.content, dict):
            self.content = MessageContent(
                text=self.content.get('text') or "",
                markup=self.content.get('markup') or ""
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'role': self.role.value,
            'content': {'text': self.content.text, 'markup': self.content.markup},
        }

@dataclass
class Conversation:
    """Represents a complete conversation"""
    title: str
    messages: List[ChatMessage]
    source_platform: str
    captured_at: datetime
    url: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.source_platform, ServiceType):
            self.source_platform = self.source_platform.value
        if isinstance(self.captured_at, str):
            self.captured_at = datetime.fromisoformat(self.captured_at)

    def get_message_count(self) -> int:
        """Get total message count"""
        return len(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'sourcePlatform': self.source_platform,
            'capturedAt': self.captured_at.isoformat(),
            'url': self.url,
            'messages': [msg.to_dict() for msg in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        """Rebuild a conversation from its serialized form"""
        return cls(
            title=data['title'],
            messages=[ChatMessage(role=m['role'], content=m['content']) for m in data.get('messages', [])],
            source_platform=data.get('sourcePlatform', ''),
            captured_at=data['capturedAt'],
            url=data.get('url'),
        )

@dataclass
class Envelope:
    """Unit exchanged between execution contexts"""
    action: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    sender: Optional[str] = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if isinstance(self.action, Action):
            self.action = self.action.value

def conversation_to_payload(conversation: Conversation) -> Dict[str, Any]:
    """Envelope data for content-ready: roles become display labels"""
    return {
        'title': conversation.title,
        'url': conversation.url,
        'sourcePlatform': conversation.source_platform,
        'capturedAt': conversation.captured_at.isoformat(),
        'messages': [
            {
                'author': msg.role.label,
                'content': {'text': msg.content.text, 'markup': msg.content.markup},
            }
            for msg in conversation.messages
        ],
    }

def payload_to_conversation(data: Dict[str, Any]) -> Conversation:
    """Rebuild a conversation from content-ready data"""
    messages = []
    for item in data.get('messages') or []:
        content = item.get('content')
        if not isinstance(content, dict):
            content = {'text': str(content or ''), 'markup': ''}
        messages.append(ChatMessage(role=MessageRole.from_label(item.get('author')), content=content))

    return Conversation(
        title=data.get('title') or 'Conversation',
        messages=messages,
        source_platform=data.get('sourcePlatform', ''),
        captured_at=data.get('capturedAt') or datetime.now(),
        url=data.get('url'),
    )
