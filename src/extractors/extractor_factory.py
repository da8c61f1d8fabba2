#!/usr/bin/env python3
"""
Extractor Factory for Chat Export
Creates the site adapter for a platform.
"""

from typing import Dict, Any, List, Optional, Union
import logging

from models import ServiceType
from extractors.base_extractor import BaseExtractor
from extractors.chatgpt_extractor import ChatGPTExtractor
from extractors.gemini_extractor import GeminiExtractor
from extractors.claude_extractor import ClaudeExtractor

logger = logging.getLogger(__name__)

class ExtractorFactory:
    """Builds the adapter registered for each supported platform"""

    ADAPTERS = {
        ServiceType.CHATGPT: ChatGPTExtractor,
        ServiceType.GEMINI: GeminiExtractor,
        ServiceType.CLAUDE: ClaudeExtractor,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    def create_extractor(self, service: Union[str, ServiceType]) -> BaseExtractor:
        """
        Create the adapter for a platform

        Args:
            service: Platform name (case-insensitive) or ServiceType

        Returns:
            Adapter instance

        Raises:
            ValueError: If the platform has no adapter
        """
        service_type = self._resolve(service)
        if service_type is None:
            raise ValueError(f"Unsupported service: {service}. "
                             f"Supported services: {', '.join(self.get_supported_services())}")

        logger.debug(f"Creating {service_type.value} adapter")
        return self.ADAPTERS[service_type](service_type, self.config)

    @classmethod
    def get_supported_services(cls) -> List[str]:
        return [service_type.value for service_type in cls.ADAPTERS]

    def is_supported_service(self, service: Union[str, ServiceType]) -> bool:
        return self._resolve(service) is not None

    @classmethod
    def _resolve(cls, service: Union[str, ServiceType]) -> Optional[ServiceType]:
        if isinstance(service, ServiceType):
            return service if service in cls.ADAPTERS else None
        try:
            service_type = ServiceType((service or '').lower())
        except ValueError:
            return None
        return service_type if service_type in cls.ADAPTERS else None
