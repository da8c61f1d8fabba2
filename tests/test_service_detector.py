#!/usr/bin/env python3
"""
Tests for ServiceDetector
"""

import unittest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from extractors.service_detector import ServiceDetector

class TestServiceDetector(unittest.TestCase):
    """Test cases for ServiceDetector"""

    def setUp(self):
        self.detector = ServiceDetector()

    def test_detect_chatgpt_service(self):
        """Test ChatGPT URL detection"""
        test_urls = [
            "https://chat.openai.com/share/abc123",
            "https://chatgpt.com/share/xyz789",
            "https://chatgpt.com/c/6885c4e8-7c2c-832d-a1b2-9c52925434a1",
            "https://ChatGPT.com/c/UPPER",
        ]

        for url in test_urls:
            with self.subTest(url=url):
                self.assertEqual(self.detector.detect_service(url), "chatgpt")

    def test_detect_gemini_service(self):
        """Test Gemini URL detection"""
        test_urls = [
            "https://gemini.google.com/app/7b0661ec349ada92",
            "https://bard.google.com/chat/xyz789",
            "https://gemini.google.com/u/1/app/7b0661ec349ada92",
            "https://g.co/gemini/share/dd9051d9712f",
        ]

        for url in test_urls:
            with self.subTest(url=url):
                self.assertEqual(self.detector.detect_service(url), "gemini")

    def test_detect_claude_service(self):
        """Test Claude URL detection"""
        test_urls = [
            "https://claude.ai/chat/abc123",
            "https://anthropic.com/claude/share/xyz789",
            "https://claude.ai/chat/a1e8c91f-59fe-44e4-b2da-542b9809d7d2",
        ]

        for url in test_urls:
            with self.subTest(url=url):
                self.assertEqual(self.detector.detect_service(url), "claude")

    def test_unsupported_service(self):
        """Test unsupported URL"""
        unsupported_urls = [
            "https://example.com/chat/abc123",
            "https://google.com/search?q=test",
            "https://grok.com/chat/de64d505",
            "file:///home/user/chatgpt.com.html",
            "invalid-url",
            "",
            None,
        ]

        for url in unsupported_urls:
            with self.subTest(url=url):
                self.assertIsNone(self.detector.detect_service(url))

    def test_is_supported_service(self):
        """Test is_supported_service method"""
        self.assertTrue(self.detector.is_supported_service("https://chat.openai.com/c/abc123"))
        self.assertTrue(self.detector.is_supported_service("https://claude.ai/chat/xyz789"))
        self.assertFalse(self.detector.is_supported_service("https://example.com/chat/abc123"))

    def test_supported_domains(self):
        domains = self.detector.get_supported_domains()
        self.assertIn(r'claude\.ai', domains)
        self.assertEqual(len(domains), 7)

if __name__ == '__main__':
    unittest.main()
