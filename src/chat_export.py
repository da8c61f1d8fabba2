#!/usr/bin/env python3
"""
Chat Export CLI
Export an AI chat conversation from a saved page or URL to JSON, Markdown or HTML.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict
import logging

from config_manager import ConfigManager
from page import Page, PageLoader
from message_bus import MessageBus
from browser import BrowserHost
from background import BackgroundCoordinator
from popup import ControlSurface
from conversation_uploader import ConversationUploader, UploadError, build_record
from extractors.service_detector import ServiceDetector
from extractors.extractor_factory import ExtractorFactory

VERSION = "0.2.0"

FORMAT_CHOICES = {
    'json': ['json'],
    'markdown': ['markdown'],
    'html': ['html'],
    'both': ['json', 'markdown'],
}

logger = logging.getLogger(__name__)

def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

async def run_export(page: Page, platform: str, config: Dict[str, Any], args: argparse.Namespace) -> int:
    """Drive one export through the popup, background and preview contexts"""
    bus = MessageBus()
    browser = BrowserHost(bus, config)
    background = BackgroundCoordinator(bus, browser, config)
    background.start()

    tab_id = browser.open_tab(page)
    preview = browser.open_preview()
    popup = ControlSurface(bus, browser, config)

    try:
        status = await popup.export_active_tab(platform)
        if not status['success']:
            logger.error(status['message'])
            return 1
        logger.info(status['message'])

        timeout = config.get('messaging', {}).get('request_timeout', 10.0)
        conversation = await preview.wait_for_conversation(timeout)
        if conversation is None:
            logger.error("No conversation data received")
            return 1

        output_dir = args.output or config.get('default_output', '~/Documents/Conversations')
        formats = FORMAT_CHOICES[args.format] if args.format else None
        paths = preview.download(Path(output_dir), formats)

        if args.upload:
            uploader = ConversationUploader(config)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, uploader.submit, build_record(conversation))

        print("✅ Successfully exported conversation!")
        for path in paths:
            print(f"📁 Saved to: {path}")
        print(f"📊 Messages: {conversation.get_message_count()}")
        return 0

    finally:
        await browser.close_tab(tab_id)
        preview.stop()
        await background.stop()
        await bus.close()

def main():
    parser = argparse.ArgumentParser(
        description="Export AI chat conversations to JSON and Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chat_export https://chatgpt.com/c/abc123
  chat_export saved_chat.html --platform claude --output ~/Documents/Chats
  chat_export https://gemini.google.com/app/xyz --format markdown --verbose
        """
    )

    parser.add_argument(
        "source",
        help="Saved HTML file or chat page URL to export from"
    )

    parser.add_argument(
        "--platform", "-p",
        choices=ExtractorFactory.get_supported_services(),
        help="Manually specify the platform (default: auto-detect from URL)"
    )

    parser.add_argument(
        "--output", "-o",
        help="Output directory for the export files (default: from config)"
    )

    parser.add_argument(
        "--config", "-c",
        help="Configuration file path (default: ~/.config/chat_export/config.yaml)"
    )

    parser.add_argument(
        "--format", "-f",
        choices=list(FORMAT_CHOICES),
        help="Export format (default: from config)"
    )

    parser.add_argument(
        "--upload",
        action="store_true",
        help="Also submit the conversation to the configured upload endpoint"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Chat Export v{VERSION}"
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        logger.info("Loading configuration...")
        config = ConfigManager(args.config).load_config()

        logger.info(f"Loading page from {args.source}...")
        page = PageLoader(config).load(args.source)
        if page is None:
            logger.error(f"Could not load page: {args.source}")
            return 1

        platform = args.platform or ServiceDetector().detect_service(page.location)
        if not platform:
            logger.error(f"Could not detect platform from {page.location}, use --platform")
            return 1
        logger.info(f"Using platform: {platform}")

        return asyncio.run(run_export(page, platform, config, args))

    except UploadError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

if __name__ == "__main__":
    sys.exit(main())
