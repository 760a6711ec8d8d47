#!/usr/bin/env python3
"""wosync CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from wosync.lib.config import load_config
from wosync.lib.validate import ValidationError
from wosync.commands import parse as cmd_parse_module
from wosync.commands import stack as cmd_stack_module
from wosync.commands import push as cmd_push_module


def get_config(args):
    """Load config from --config or ./wosync.env."""
    config_path = Path(args.config) if args.config else None
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        sys.exit(2)
    except (ValidationError, ValueError) as e:
        print(f"ERROR: Invalid config: {e}")
        sys.exit(2)


def setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def cmd_parse(args):
    return cmd_parse_module.cmd_parse(args, get_config(args))


def cmd_stack(args):
    return cmd_stack_module.cmd_stack(args, get_config(args))


def cmd_show(args):
    return cmd_stack_module.cmd_stack_show(args, get_config(args))


def cmd_push(args):
    return cmd_push_module.cmd_push(args, get_config(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='wos', description='Work order notes sync')
    parser.add_argument('--config', '-c', help='Path to wosync.env (default: ./wosync.env)')
    parser.add_argument('--verbose', '-v', action='count', default=0, help='More logging (-vv for debug)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # wos parse
    p_parse = subparsers.add_parser('parse', help='Preview parsed entries of a work order')
    p_parse.add_argument('wo', help='Work order number (7 digits)')
    p_parse.set_defaults(func=cmd_parse)

    # wos stack
    p_stack = subparsers.add_parser(
        'stack',
        help='Stage a work order, or show/remove/clear the stack',
        description='wos stack <wo> | wos stack show | wos stack remove <wo> | wos stack clear',
    )
    p_stack.add_argument('target', help="Work order number, or one of: show, remove, clear")
    p_stack.add_argument('extra', nargs='*', help='Work order number for remove')
    p_stack.set_defaults(func=cmd_stack)

    # wos show
    p_show = subparsers.add_parser('show', help='Show the stack')
    p_show.set_defaults(func=cmd_show)

    # wos push
    p_push = subparsers.add_parser('push', help='Push the stack to the remote system')
    p_push.add_argument('--dry-run', action='store_true', help='Show what would be pushed, change nothing')
    p_push.add_argument('--no-mark', action='store_true', help='Do not mark pushed lines in note files')
    p_push.set_defaults(func=cmd_push)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
