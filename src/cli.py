#!/usr/bin/env python3
"""CLI entry point for pulumi-driver.

Usage:
    pulumi-driver <command> [--inputs FILE|-] [options] [ARGS...]

Commands:
- login [URL] [--local]: Log in to a pulumi backend
- up: Create or update the stack
- destroy: Destroy the stack resources
- stack <init|rm|ls>: Stack management

Inputs are a JSON document in the orchestrator's shape (Properties,
Credentials, Project, Args). Trailing ARGS are appended to Args.
"""

import argparse
import json
import logging
import shlex
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

from common import ActionResult, print_line
from config import ConfigError, load_config
from dispatcher import STACK_COMMANDS, TOP_LEVEL_COMMANDS
from errors import DriverError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def get_version() -> str:
    try:
        return version('pulumi-driver')
    except PackageNotFoundError:
        return 'dev'


def print_usage():
    """Print top-level usage showing commands."""
    print(f"pulumi-driver {get_version()}")
    print()
    print("Usage: pulumi-driver <command> [--inputs FILE|-] [options] [ARGS...]")
    print()
    print("Commands:")
    for command, desc in TOP_LEVEL_COMMANDS.items():
        print(f"  {command:<12} {desc}")
    print()
    print("Stack sub-commands:")
    for sub, desc in STACK_COMMANDS.items():
        print(f"  stack {sub:<6} {desc}")
    print()
    print("Examples:")
    print("  pulumi-driver up --inputs inputs.json")
    print("  pulumi-driver stack --inputs inputs.json init")
    print("  pulumi-driver destroy --inputs - --silent < inputs.json")
    print("  pulumi-driver login --local")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pulumi-driver',
        description='Drive pulumi stacks for an orchestrator',
    )
    parser.add_argument('--version', action='version', version=f'pulumi-driver {get_version()}')
    parser.add_argument('command', help=f"One of: {', '.join(TOP_LEVEL_COMMANDS)}")
    parser.add_argument(
        '--inputs', '-i',
        help="Inputs JSON file ('-' reads stdin)",
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Driver config YAML (default: $PULUMI_DRIVER_CONFIG or ~/.pulumi-driver/config.yaml)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs and engine output go to stderr)',
    )
    return parser


def _setup_logging(verbose: bool, json_output: bool) -> None:
    """Configure logging based on flags."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    if json_output:
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root_logger.addHandler(stderr_handler)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def load_inputs(source: Optional[str]) -> dict:
    """Read inputs JSON from a file path or '-' for stdin.

    Raises:
        ValueError: If the document is not a JSON object
    """
    if not source:
        return {}
    if source == '-':
        text = sys.stdin.read()
    else:
        text = Path(source).read_text(encoding='utf-8')
    data = json.loads(text) if text.strip() else {}
    if not isinstance(data, dict):
        raise ValueError("inputs must be a JSON object")
    return data


def merge_args(inputs: dict, extra: list[str]) -> dict:
    """Append CLI tokens to the inputs' Args."""
    if not extra:
        return inputs
    key = 'args' if 'args' in inputs and 'Args' not in inputs else 'Args'
    existing = inputs.get(key) or []
    tokens = shlex.split(existing) if isinstance(existing, str) else list(existing)
    return {**inputs, key: tokens + extra}


def _print_result(command: str, result: ActionResult, json_output: bool) -> None:
    if json_output:
        print(json.dumps({'command': command, **result.to_dict()}, indent=2))
        return
    if result.message:
        print(result.message)
    if summary := result.details.get('summary'):
        print(json.dumps(summary, indent=2))
    if outputs := result.details.get('outputs'):
        print("Outputs:")
        print(json.dumps(outputs, indent=2))


def _stderr_line(line: str) -> None:
    print(line, file=sys.stderr, flush=True)


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        print_usage()
        return 0

    parser = _build_parser()
    args, extra = parser.parse_known_args(argv)
    _setup_logging(args.verbose, args.json_output)

    if args.command not in TOP_LEVEL_COMMANDS:
        # Soft failure: batch callers should not abort on a typo
        print(f"Sorry, {args.command} is not supported for pulumi component")
        print_usage()
        return 0

    try:
        inputs = merge_args(load_inputs(args.inputs), extra)
    except (OSError, ValueError) as e:
        print(f"Error reading inputs: {e}", file=sys.stderr)
        return 1

    from component import PulumiComponent
    try:
        config = load_config(args.config)
        component = PulumiComponent(
            config=config,
            output_sink=_stderr_line if args.json_output else print_line,
        )
        result = component.run(args.command, inputs)
    except (DriverError, ConfigError) as e:
        logger.error(str(e))
        if args.json_output:
            print(json.dumps({'command': args.command, 'success': False, 'message': str(e)}, indent=2))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_result(args.command, result, args.json_output)
    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
