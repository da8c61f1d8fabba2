#!/usr/bin/env python3
"""
Service Detector for Chat Export
Detects the chat platform a page belongs to from its URL.
"""

import re
from urllib.parse import urlparse
from typing import List, Optional
import logging

from models import ServiceType

logger = logging.getLogger(__name__)

class ServiceDetector:
    """Maps page locations to the platform whose adapter handles them"""

    SERVICE_PATTERNS = {
        ServiceType.CHATGPT: [
            r'chat\.openai\.com',
            r'chatgpt\.com',
        ],
        ServiceType.GEMINI: [
            r'gemini\.google\.com',
            r'bard\.google\.com',
            r'g\.co/gemini',
        ],
        ServiceType.CLAUDE: [
            r'claude\.ai',
            r'anthropic\.com/claude',
        ]
    }

    def detect_service_type(self, url: Optional[str]) -> Optional[ServiceType]:
        """
        Detect the platform of a page

        Only the host and path are matched, so local files and pages with no
        host never match.

        Args:
            url: Page location

        Returns:
            ServiceType or None if no adapter handles the page
        """
        try:
            parsed = urlparse((url or '').lower())
        except ValueError as e:
            logger.debug(f"Could not parse URL {url}: {e}")
            return None

        if not parsed.netloc:
            return None

        location = f"{parsed.netloc}{parsed.path}"
        for service_type, patterns in self.SERVICE_PATTERNS.items():
            if any(re.search(pattern, location) for pattern in patterns):
                logger.debug(f"Detected service: {service_type.value}")
                return service_type

        logger.debug(f"Could not detect service from URL: {url}")
        return None

    def detect_service(self, url: Optional[str]) -> Optional[str]:
        """Platform name for a page location, or None"""
        service_type = self.detect_service_type(url)
        return service_type.value if service_type else None

    def is_supported_service(self, url: Optional[str]) -> bool:
        return self.detect_service_type(url) is not None

    def get_supported_domains(self) -> List[str]:
        """Get list of all supported domain patterns"""
        return [pattern for patterns in self.SERVICE_PATTERNS.values() for pattern in patterns]
