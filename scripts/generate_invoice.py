#!/usr/bin/env python3
"""Generate an invoice from a text file or stdin with the configured provider.

Prints the pipeline result as JSON. Exit code 0 on success, 1 on failure.

Usage:
    python scripts/generate_invoice.py notes.txt --owner me
    echo "Logo design for Sarah, $120" | python scripts/generate_invoice.py

Requirements:
    - Provider credentials in the environment (e.g. APP_GEMINI_API_KEY)
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from invoice_ai.extraction.factory import create_provider
from invoice_ai.pipeline.orchestrator import InvoicePipeline, PipelineResult
from invoice_ai.shared.config import get_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate an invoice from free-form text")
    parser.add_argument("input", nargs="?", type=Path, help="Text file (default: stdin)")
    parser.add_argument("--owner", default="cli", help="Owner id recorded with the invoice")
    return parser.parse_args(argv)


async def run(text: str, owner_id: str) -> PipelineResult:
    """Run the pipeline once; Ctrl-C cancels the in-flight provider call."""
    settings = get_settings()
    provider = create_provider(settings)
    pipeline = InvoicePipeline(settings, provider)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        handles_sigint = False  # Windows event loops have no signal handlers

    try:
        return await pipeline.run(text, owner_id, cancel_event)
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await provider.aclose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    text = args.input.read_text(encoding="utf-8") if args.input else sys.stdin.read()
    result = asyncio.run(run(text, args.owner))
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
