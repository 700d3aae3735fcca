#!/usr/bin/env python3
"""
molert - Command line interface

Usage
  molert serve [--slack_webhook URL] [--redis_url HOST:PORT] [--expiration S]
               [--frequency S] [--listen_addr HOST:PORT]
               [--silence_duration S] [--external_url URL]
  molert list    [--url http://localhost:19093]
  molert silence GENERATOR_URL [--duration S] [--url http://localhost:19093]
  molert status  [--url http://localhost:19093]
"""

import argparse
import sys
from typing import List, Optional

from molert.commands import cmd_list, cmd_serve, cmd_silence, cmd_status

COMMANDS = {
    'serve': cmd_serve,
    'list': cmd_list,
    'silence': cmd_silence,
    'status': cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='molert', description='Minimal alert relay for Prometheus and Slack')
    subparsers = parser.add_subparsers(dest='command')
    for module in COMMANDS.values():
        module.register(subparsers)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command not in COMMANDS:
        parser.print_help()
        return 1

    return COMMANDS[args.command].execute(args)


if __name__ == '__main__':
    sys.exit(main())
