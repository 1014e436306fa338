#!/usr/bin/env python3
"""Vscale machine driver: CLI entrypoint."""

import argparse

from vscale_machine.commands.machine import register_machine_commands
from vscale_machine.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Create and manage Vscale scalets")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_machine_commands(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
