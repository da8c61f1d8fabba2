#!/usr/bin/env python3
"""
Common Extraction Components for Chat Export
Shared result containers and error types used by the site adapters.
"""

from typing import Optional, List
from dataclasses import dataclass
from datetime import datetime
from bs4 import Tag

from models import MessageRole

@dataclass
class RawBlock:
    """A located message block and the role the adapter assigned to it"""
    role_hint: MessageRole
    fragment: Tag

class AdapterResult:
    """Container for adapter results with metadata (never leaves the page context)"""

    def __init__(self, blocks: List[RawBlock], method: Optional[str] = None):
        self.blocks = blocks
        self.method = method  # Which convention in the fallback chain matched
        self.success = len(blocks) > 0

    def __len__(self) -> int:
        return len(self.blocks)

class ExtractionError(Exception):
    """Base exception for extraction errors"""

    def __init__(self, message: str, error_type: str = "general", service: Optional[str] = None):
        super().__init__(message)
        self.error_type = error_type
        self.service = service
        self.timestamp = datetime.now()

def document_order(tags: List[Tag]) -> List[Tag]:
    """
    Deduplicate tags and drop those nested inside another candidate

    Args:
        tags: Candidate tags in document order

    Returns:
        Outermost tags, still in document order
    """
    kept = []
    seen = set()
    for tag in tags:
        if id(tag) in seen:
            continue
        seen.add(id(tag))
        if any(id(parent) in seen for parent in tag.parents):
            continue
        kept.append(tag)
    return kept
