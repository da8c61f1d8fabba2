#!/usr/bin/env python3
"""
Tests for the command line export run
"""

import argparse
import contextlib
import io
import shutil
import tempfile
import threading
import unittest
from unittest import mock
import sys
import os
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from page import Page
from conversation_uploader import ConversationUploader, UploadError
from chat_export import run_export

FIXTURES = Path(__file__).parent / 'fixtures'
CONFIG = {
    'navigation': {'poll_interval': 0.01, 'settle_delay': 0.01},
    'messaging': {'request_timeout': 1.0, 'injection_delay': 0.01},
    'background': {'max_stored_conversations': 10},
    'upload': {'endpoint': 'https://example.com/api/conversations', 'token': 'secret'},
}

class TestRunExport(unittest.IsolatedAsyncioTestCase):
    """Test cases for run_export"""

    def setUp(self):
        self.output_dir = tempfile.mkdtemp()
        self.page = Page((FIXTURES / 'chatgpt_current.html').read_text(encoding='utf-8'),
                         'https://chatgpt.com/c/abc123')

    def tearDown(self):
        shutil.rmtree(self.output_dir, ignore_errors=True)

    def args(self, upload: bool) -> argparse.Namespace:
        return argparse.Namespace(output=self.output_dir, format='json', upload=upload)

    async def test_writes_export_files(self):
        with contextlib.redirect_stdout(io.StringIO()):
            status = await run_export(self.page, 'chatgpt', CONFIG, self.args(upload=False))

        self.assertEqual(status, 0)
        written = list(Path(self.output_dir).glob('*.json'))
        self.assertEqual(len(written), 1)

    async def test_upload_runs_off_the_event_loop_thread(self):
        calls = []

        def fake_submit(uploader, record):
            calls.append((threading.current_thread(), record['title']))
            return {}

        with mock.patch.object(ConversationUploader, 'submit', autospec=True, side_effect=fake_submit):
            with contextlib.redirect_stdout(io.StringIO()):
                status = await run_export(self.page, 'chatgpt', CONFIG, self.args(upload=True))

        self.assertEqual(status, 0)
        self.assertEqual(len(calls), 1)
        thread, title = calls[0]
        self.assertIsNot(thread, threading.current_thread())
        self.assertEqual(title, 'My Plan - ChatGPT')

    async def test_upload_failure_propagates(self):
        with mock.patch.object(ConversationUploader, 'submit', autospec=True,
                               side_effect=UploadError("Upload failed")):
            with self.assertRaises(UploadError):
                await run_export(self.page, 'chatgpt', CONFIG, self.args(upload=True))

if __name__ == '__main__':
    unittest.main()
