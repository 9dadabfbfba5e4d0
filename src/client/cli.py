"""Generate an icon through a running relay and save it to disk.

Usage:
    iconstream "A brass compass" --material metallic --angle isometric

    iconstream "A leather wallet" --relay-url http://127.0.0.1:8787 \\
        --size 1024 --format png --output-dir ./icons

    # Use one of the built-in quick prompts
    iconstream --quick-prompt 3
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from client.prompting import (
    ANGLES,
    DEFAULT_ANGLE,
    DEFAULT_MATERIAL,
    DEFAULT_SIZE,
    MATERIALS,
    QUICK_PROMPTS,
    SIZES,
    enhance_prompt,
    find_quick_prompt,
    image_size_for,
)
from client.relay_client import RelayClient
from client.session import GenerationController, SessionStatus, SessionUpdate


logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "http://127.0.0.1:8787"


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a skeuomorphic icon via the IconStream relay"
    )
    parser.add_argument("prompt", nargs="?", help="What the icon should show")
    parser.add_argument(
        "--quick-prompt",
        choices=[q.id for q in QUICK_PROMPTS],
        help="Use a built-in prompt instead of PROMPT",
    )
    parser.add_argument(
        "--material",
        choices=[m.id for m in MATERIALS],
        default=DEFAULT_MATERIAL,
        help=f"Material style (default: {DEFAULT_MATERIAL})",
    )
    parser.add_argument(
        "--angle",
        choices=[a.id for a in ANGLES],
        default=DEFAULT_ANGLE,
        help=f"Camera angle (default: {DEFAULT_ANGLE})",
    )
    parser.add_argument(
        "--size",
        choices=[s.id for s in SIZES],
        default=DEFAULT_SIZE,
        help=f"Square output size in pixels (default: {DEFAULT_SIZE})",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["jpeg", "png"],
        default="jpeg",
        help="Output image format (default: jpeg)",
    )
    parser.add_argument(
        "--relay-url",
        default=DEFAULT_RELAY_URL,
        help=f"Relay base URL (default: {DEFAULT_RELAY_URL})",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the generated icon (default: current directory)",
    )
    return parser


def _print_progress(update: SessionUpdate) -> None:
    if update.progress_message:
        print(update.progress_message, file=sys.stderr)


async def run(args: argparse.Namespace, controller: GenerationController) -> int:
    """Run one generation with parsed arguments; returns a process exit code."""
    if args.quick_prompt:
        base_prompt = find_quick_prompt(args.quick_prompt).prompt
    else:
        base_prompt = args.prompt or ""

    prompt = enhance_prompt(base_prompt, args.material, args.angle)
    if not prompt:
        logger.error("Please enter a prompt.")
        return 2

    unsubscribe = controller.subscribe(_print_progress)
    try:
        session = await controller.submit(
            prompt,
            image_size=image_size_for(args.size),
            output_format=args.output_format,
            history_prompt=base_prompt,
        )
        if session.status is not SessionStatus.SUCCESS or not session.history_entry:
            logger.error("Generation failed: %s", session.error)
            return 1

        path = controller.history.export(session.history_entry.id, args.output_dir)
        print(path)
        return 0
    finally:
        unsubscribe()
        await controller.close()


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    args = _create_parser().parse_args(argv)
    controller = GenerationController(RelayClient(args.relay_url))
    return asyncio.run(run(args, controller))


if __name__ == "__main__":
    sys.exit(main())
