#!/usr/bin/env python3
"""
Tests for the background coordinator, popup and preview working together
"""

import asyncio
import json
import shutil
import tempfile
import unittest
import sys
import os
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from models import Action, Envelope, MessageRole
from page import Page
from message_bus import MessageBus
from browser import BrowserHost
from background import BACKGROUND_CONTEXT, BackgroundCoordinator
from popup import ControlSurface
from preview import PREVIEW_CONTEXT
from orchestrator import EMPTY_RESULT_ERROR

FIXTURES = Path(__file__).parent / 'fixtures'
CAPTURED_AT = datetime(2024, 5, 1, 12, 30, 0)
CONFIG = {
    'navigation': {'poll_interval': 0.01, 'settle_delay': 0.01},
    'messaging': {'request_timeout': 1.0, 'injection_delay': 0.01},
    'background': {'max_stored_conversations': 10},
}

def load_page(fixture: str, url: str) -> Page:
    return Page((FIXTURES / fixture).read_text(encoding='utf-8'), url)

class CoordinatorTestCase(unittest.IsolatedAsyncioTestCase):

    config = CONFIG

    async def asyncSetUp(self):
        self.bus = MessageBus()
        self.browser = BrowserHost(self.bus, self.config, clock=lambda: CAPTURED_AT)
        self.background = BackgroundCoordinator(self.bus, self.browser, self.config, clock=lambda: CAPTURED_AT)
        self.background.start()
        self.popup = ControlSurface(self.bus, self.browser, self.config)

    async def asyncTearDown(self):
        for tab_id in list(self.browser.tabs):
            await self.browser.close_tab(tab_id)
        await self.background.stop()
        await self.bus.close()

class TestExportFlow(CoordinatorTestCase):
    """Popup -> background -> content script -> background -> preview"""

    async def test_export_reaches_preview(self):
        self.browser.open_tab(load_page('chatgpt_current.html', 'https://chatgpt.com/c/abc123'))
        preview = self.browser.open_preview()

        status = await self.popup.export_active_tab()

        self.assertTrue(status['success'], status['message'])
        conversation = await preview.wait_for_conversation(timeout=1)
        self.assertIsNotNone(conversation)
        self.assertEqual(conversation.title, 'My Plan - ChatGPT')
        self.assertEqual([m.role for m in conversation.messages],
                         [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER])
        self.assertEqual(conversation.captured_at, CAPTURED_AT)
        self.assertEqual(list(self.background.conversations), ['conv_1'])
        self.assertEqual(preview.conversation_key, 'conv_1')

    async def test_preview_opened_on_demand(self):
        self.browser.open_tab(load_page('gemini.html', 'https://gemini.google.com/app/7b0661ec'))

        status = await self.popup.export_active_tab()
        self.assertTrue(status['success'], status['message'])

        for _ in range(20):
            if self.browser.preview is not None:
                break
            await asyncio.sleep(0.01)

        conversation = await self.browser.preview.wait_for_conversation(timeout=1)
        self.assertEqual(conversation.title, 'What is the tallest mountain on Earth? - Gemini')

    async def test_platform_override_for_saved_page(self):
        self.browser.open_tab(load_page('claude_current.html', 'file:///tmp/saved.html'))
        preview = self.browser.open_preview()

        status = await self.popup.export_active_tab(platform='claude')

        self.assertTrue(status['success'], status['message'])
        conversation = await preview.wait_for_conversation(timeout=1)
        self.assertEqual(conversation.get_message_count(), 4)
        self.assertEqual(conversation.source_platform, 'claude')

    async def test_empty_page(self):
        self.browser.open_tab(load_page('empty.html', 'https://chatgpt.com/c/abc123'))

        status = await self.popup.export_active_tab()

        self.assertFalse(status['success'])
        self.assertIn(EMPTY_RESULT_ERROR, status['message'])
        self.assertEqual(len(self.background.conversations), 0)
        self.assertIsNone(self.browser.preview)

    async def test_no_active_tab(self):
        status = await self.popup.export_active_tab()
        self.assertFalse(status['success'])

    async def test_unsupported_page(self):
        self.browser.open_tab(load_page('chatgpt_current.html', 'https://example.com/chat'))

        status = await self.popup.export_active_tab()

        self.assertFalse(status['success'])
        self.assertIn('No adapter', status['message'])

    async def test_content_script_injected_once(self):
        tab_id = self.browser.open_tab(load_page('chatgpt_current.html', 'https://chatgpt.com/c/abc123'))
        preview = self.browser.open_preview()

        first = await self.popup.export_active_tab()
        await preview.wait_for_conversation(timeout=1)
        script = self.browser.content_scripts[tab_id]
        second = await self.popup.export_active_tab()

        self.assertTrue(first['success'])
        self.assertTrue(second['success'], second['message'])
        self.assertIs(self.browser.content_scripts[tab_id], script)

    async def test_download(self):
        self.browser.open_tab(load_page('chatgpt_current.html', 'https://chatgpt.com/c/abc123'))
        preview = self.browser.open_preview()
        await self.popup.export_active_tab()
        await preview.wait_for_conversation(timeout=1)

        output_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, output_dir)
        exported_at = datetime(2024, 5, 1, 13, 0, 0)

        paths = preview.download(output_dir, exported_at=exported_at)

        self.assertEqual(sorted(p.name for p in paths), [
            'conversation_chatgpt_2024-05-01T13-00-00.json',
            'conversation_chatgpt_2024-05-01T13-00-00.md',
        ])
        data = json.loads((output_dir / 'conversation_chatgpt_2024-05-01T13-00-00.json').read_text(encoding='utf-8'))
        self.assertEqual(data['totalMessages'], 3)
        markdown = (output_dir / 'conversation_chatgpt_2024-05-01T13-00-00.md').read_text(encoding='utf-8')
        self.assertTrue(markdown.startswith('# My Plan - ChatGPT'))

    async def test_download_rich_text(self):
        self.browser.open_tab(load_page('chatgpt_current.html', 'https://chatgpt.com/c/abc123'))
        preview = self.browser.open_preview()
        await self.popup.export_active_tab()
        await preview.wait_for_conversation(timeout=1)

        output_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, output_dir)

        paths = preview.download(output_dir, ['html'], exported_at=datetime(2024, 5, 1, 13, 0, 0))

        self.assertEqual([p.name for p in paths], ['conversation_chatgpt_2024-05-01T13-00-00.html'])
        html = paths[0].read_text(encoding='utf-8')
        self.assertIn('<h1>My Plan - ChatGPT</h1>', html)
        self.assertIn('cost = 300', html)

class TestBackgroundActions(CoordinatorTestCase):
    """Direct envelopes to the background coordinator"""

    config = dict(CONFIG, background={'max_stored_conversations': 2})

    def content_ready(self, title):
        return Envelope(action=Action.CONTENT_READY, sender='tab:1', data={
            'title': title,
            'sourcePlatform': 'chatgpt',
            'capturedAt': CAPTURED_AT.isoformat(),
            'messages': [
                {'author': 'User', 'content': {'text': 'hi', 'markup': 'hi'}},
                {'author': 'Assistant', 'content': 'plain reply'},
            ],
        })

    async def test_content_ready_acknowledged_and_stored(self):
        reply = await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('First'), timeout=1)

        self.assertEqual(reply, {'success': True, 'received': True})
        conversation = self.background.latest_conversation
        self.assertEqual(conversation.title, 'First')
        self.assertEqual(conversation.messages[1].role, MessageRole.ASSISTANT)
        self.assertEqual(conversation.messages[1].content.text, 'plain reply')

    async def test_store_is_bounded(self):
        for title in ('First', 'Second', 'Third'):
            await self.bus.request(BACKGROUND_CONTEXT, self.content_ready(title), timeout=1)

        self.assertEqual(list(self.background.conversations), ['conv_2', 'conv_3'])
        self.assertEqual(self.background.latest_key, 'conv_3')

    async def test_content_failed_opens_system_message(self):
        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(
            action=Action.CONTENT_FAILED, error='document detached',
            data={'sourcePlatform': 'chatgpt'}, sender='tab:1',
        ), timeout=1)

        self.assertTrue(reply['success'])
        preview = self.browser.preview
        conversation = await preview.wait_for_conversation(timeout=1)
        self.assertEqual(conversation.title, 'Export failed - ChatGPT')
        self.assertEqual(conversation.messages[0].role, MessageRole.SYSTEM)
        self.assertIn('document detached', conversation.messages[0].content.text)

    async def test_get_preview_data(self):
        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(action=Action.GET_PREVIEW_DATA), timeout=1)
        self.assertFalse(reply['success'])

        await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('First'), timeout=1)
        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(action=Action.GET_PREVIEW_DATA), timeout=1)

        self.assertTrue(reply['success'])
        self.assertEqual(reply['conversation']['title'], 'First')

    async def test_get_conversation_data_by_key(self):
        await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('First'), timeout=1)
        await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('Second'), timeout=1)

        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(
            action=Action.GET_CONVERSATION_DATA, data={'key': 'conv_1'}), timeout=1)
        self.assertEqual(reply['conversation']['title'], 'First')

        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(
            action=Action.GET_CONVERSATION_DATA, data={'key': 'conv_9'}), timeout=1)
        self.assertFalse(reply['success'])

    async def test_preview_reused(self):
        await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('First'), timeout=1)
        preview = self.browser.preview
        await preview.wait_for_conversation(timeout=1)

        await self.bus.request(BACKGROUND_CONTEXT, self.content_ready('Second'), timeout=1)
        for _ in range(10):
            await asyncio.sleep(0)

        self.assertIs(self.browser.preview, preview)
        self.assertEqual(preview.conversation.title, 'Second')
        self.assertTrue(self.bus.is_registered(PREVIEW_CONTEXT))

    async def test_ping_and_keep_alive(self):
        ping = await self.bus.request(BACKGROUND_CONTEXT, Envelope(action=Action.PING), timeout=1)
        alive = await self.bus.request(BACKGROUND_CONTEXT, Envelope(action=Action.KEEP_ALIVE), timeout=1)

        self.assertTrue(ping['success'])
        self.assertTrue(alive['alive'])

    async def test_unknown_action_ignored(self):
        reply = await self.bus.request(BACKGROUND_CONTEXT, Envelope(action='reload-everything'), timeout=1)
        self.assertIsNone(reply)

if __name__ == '__main__':
    unittest.main()
