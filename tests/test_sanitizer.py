#!/usr/bin/env python3
"""
Tests for the HTML sanitizer
"""

import unittest
from unittest import mock
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bs4 import BeautifulSoup

from extractors.html_sanitizer import sanitize
from extractors.text_normalizer import TextNormalizer

def fragment(html: str):
    return BeautifulSoup(html, 'html.parser').find()

class TestSanitizer(unittest.TestCase):
    """Test cases for sanitize()"""

    def test_removes_controls_and_decorations(self):
        element = fragment(
            '<div class="markdown">'
            '<p>Use <code>sorted()</code> here.</p>'
            '<button>Copy</button>'
            '<svg><path d="M0 0"></path></svg>'
            '<img src="avatar.png">'
            '<span class="copy">Copy</span>'
            '<span class="edit">Edit</span>'
            '<i class="icon">*</i>'
            '<span class="sm-icon-wrapper">x</span>'
            '<div class="button-row">Retry</div>'
            '<input value="draft"><textarea>draft</textarea>'
            '</div>'
        )

        content = sanitize(element)

        self.assertEqual(content.text, 'Use sorted() here.')
        self.assertEqual(content.markup, '<p>Use <code>sorted()</code> here.</p>')

    def test_keeps_order_of_remaining_nodes(self):
        element = fragment('<div><p>first</p><button>x</button><p>second</p><ol><li>third</li></ol></div>')

        content = sanitize(element)

        self.assertLess(content.markup.index('first'), content.markup.index('second'))
        self.assertLess(content.markup.index('second'), content.markup.index('third'))

    def test_page_is_not_modified(self):
        soup = BeautifulSoup('<main><div id="m"><p>Answer</p><button>Copy</button></div></main>', 'html.parser')
        before = str(soup)

        sanitize(soup.find(id='m'))

        self.assertEqual(str(soup), before)
        self.assertIsNotNone(soup.find('button'))

    def test_strips_invisible_characters(self):
        element = fragment('<p>\u200bhello\u200d world\ufeff</p>')

        self.assertEqual(sanitize(element).text, 'hello world')

    def test_nested_removable_elements(self):
        element = fragment('<div><button><svg class="icon"></svg>Copy</button><p>Body text</p></div>')

        content = sanitize(element)

        self.assertEqual(content.text, 'Body text')
        self.assertNotIn('svg', content.markup)

    def test_only_decorations_yields_empty_content(self):
        element = fragment('<div> <button><svg></svg></button> <img src="x.png"> <span class="icon"></span></div>')

        content = sanitize(element)

        self.assertEqual(content.text, '')
        self.assertEqual(content.markup, '')

    def test_falls_back_to_plain_text(self):
        element = fragment('<div><p>Plain</p><button>Copy</button></div>')

        with mock.patch('extractors.html_sanitizer.copy.copy', side_effect=RuntimeError("clone failed")):
            with self.assertLogs('extractors.html_sanitizer', level='WARNING'):
                content = sanitize(element)

        self.assertEqual(content.markup, '')
        self.assertEqual(content.text, 'PlainCopy')

class TestTextNormalizer(unittest.TestCase):
    """Test cases for TextNormalizer"""

    def test_normalize_text(self):
        text = 'line  one  here\r\n\r\n\r\n\r\nline\ttwo \x07'
        self.assertEqual(TextNormalizer.normalize_text(text), 'line one here\n\nline two')

    def test_empty(self):
        self.assertEqual(TextNormalizer.normalize_text(''), '')
        self.assertEqual(TextNormalizer.strip_invisible(None), '')

if __name__ == '__main__':
    unittest.main()
