#!/usr/bin/env python3
"""agile-planner CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from agile_planner import __version__
from agile_planner.commands import materialize as cmd_materialize_module
from agile_planner.commands import serve as cmd_serve_module
from agile_planner.lib.config import load_planner_config
from agile_planner.lib.log import configure_logging

logger = logging.getLogger(__name__)


def load_config(args):
    """Load configuration, exiting with code 2 when it is unusable."""
    env_file = Path(args.config) if args.config else None
    try:
        config = load_planner_config(env_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    if getattr(args, "output_root", None):
        config.output_root = args.output_root
    if args.verbose:
        config.log_level = "DEBUG"

    configure_logging(config.log_level, config.log_file)
    return config


def cmd_serve(args):
    config = load_config(args)
    return cmd_serve_module.cmd_serve(args, config)


def cmd_materialize(args):
    config = load_config(args)
    return cmd_materialize_module.cmd_materialize(args, config)


def cmd_validate(args):
    config = load_config(args)
    return cmd_materialize_module.cmd_validate(args, config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='agile-planner',
        description='Materialize agile backlogs as cross-linked markdown',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--config', '-c', help='Env file with planner settings (default: ./planner.env if present)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # agile-planner serve
    p_serve = subparsers.add_parser('serve', help='Run the JSON-RPC server on stdin/stdout')
    p_serve.add_argument('--output-root', '-o', help='Directory that receives .agile-planner-backlog')
    p_serve.add_argument('--exit-on-eof', action='store_true', help='Stop when stdin closes')
    p_serve.set_defaults(func=cmd_serve)

    # agile-planner materialize
    p_mat = subparsers.add_parser('materialize', help='Write the markdown tree for a backlog JSON file')
    p_mat.add_argument('backlog', help='Backlog JSON file')
    p_mat.add_argument('--output-root', '-o', help='Directory that receives .agile-planner-backlog')
    p_mat.add_argument('--json', action='store_true', help='Also print the index')
    p_mat.set_defaults(func=cmd_materialize)

    # agile-planner validate
    p_val = subparsers.add_parser('validate', help='Check a backlog JSON file without writing anything')
    p_val.add_argument('backlog', help='Backlog JSON file')
    p_val.set_defaults(func=cmd_validate)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
