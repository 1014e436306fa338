"""Machine lifecycle CLI handlers."""

import asyncio
import logging
import os
import sys

import yaml

from vscale_machine.config import add_flags, create_flags, options_from_args
from vscale_machine.errors import ConfigError, DriverError
from vscale_machine.provisioning.driver import VscaleDriver, docker_url
from vscale_machine.provisioning.types import KillMode
from vscale_machine.redact import register_secret

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "~/.vscale-machine/machines"


def _build_driver(args):
    """Resolve options and build a driver for an existing or new scalet."""
    options = options_from_args(args)
    register_secret(options.access_token)

    name = getattr(args, "name", "") or ""
    store_path = getattr(args, "store_path", None) or (os.path.join(DEFAULT_STORE_DIR, name) if name else "")
    record = options.host_record(machine_name=name, store_path=os.path.expanduser(store_path))
    record.scalet_id = getattr(args, "scalet_id", None)
    record.ssh_key_id = getattr(args, "ssh_key_id", None)
    return VscaleDriver(
        record,
        poll_policy=options.poll_policy,
        best_effort_cleanup=options.best_effort_cleanup,
        api_url=options.api_url,
    )


def _run(handler, args):
    """Run an async handler, reporting driver errors and exiting non-zero."""
    try:
        asyncio.run(handler(args))
    except DriverError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


# ── CLI handlers ───────────────────────────────────────────────────


async def _handle_create(args):
    driver = _build_driver(args)
    record = await driver.create()
    logger.info(yaml.safe_dump(record.to_dict(), sort_keys=False).rstrip())
    logger.info(f"URL: {driver.get_url()}")


async def _handle_state(args):
    driver = _build_driver(args)
    try:
        state = await driver.get_state()
    except DriverError as e:
        if getattr(e, "state", None) is not None:
            logger.info(e.state.value)
        raise
    logger.info(state.value)


async def _handle_start(args):
    await _build_driver(args).start()
    logger.info(f"Scalet {args.scalet_id} started.")


async def _handle_stop(args):
    await _build_driver(args).stop()
    logger.info(f"Scalet {args.scalet_id} stopped.")


async def _handle_restart(args):
    await _build_driver(args).restart()
    logger.info(f"Scalet {args.scalet_id} restarted.")


async def _handle_kill(args):
    mode = KillMode(args.mode)
    if mode is KillMode.FORCE_DELETE and args.ssh_key_id is None:
        raise ConfigError("--ssh-key-id is required with --mode delete")
    await _build_driver(args).kill(mode)
    logger.info(f"Scalet {args.scalet_id} killed ({args.mode}).")


async def _handle_remove(args):
    await _build_driver(args).remove()
    logger.info(f"Scalet {args.scalet_id} removed.")


def handle_url(args):
    """CLI handler for 'url'; needs no credentials."""
    logger.info(docker_url(args.ip))


def handle_flags(args):
    """CLI handler for 'flags': print the driver option table."""
    for flag in create_flags():
        default = "" if flag.default in (None, "") else f" [default: {flag.default}]"
        logger.info(f"--{flag.name:<28} {flag.env_var:<28} {flag.usage}{default}")


# ── Registration ───────────────────────────────────────────────────


def _add_scalet_id(parser):
    parser.add_argument("--scalet-id", type=int, required=True, help="Vscale scalet ID (ctid)")


def _add_ssh_key_id(parser, required=False):
    parser.add_argument("--ssh-key-id", type=int, required=required, default=None, help="Vscale SSH key ID created with the scalet")


def register_machine_commands(subparsers):
    """Register the lifecycle subcommands."""
    parser = subparsers.add_parser("create", help="Create a scalet")
    parser.add_argument("--name", required=True, help="Machine name (scalet and SSH key name)")
    parser.add_argument("--store-path", default=None, help=f"Directory for the SSH key pair (default: {DEFAULT_STORE_DIR}/NAME)")
    add_flags(parser)
    parser.set_defaults(func=lambda args: _run(_handle_create, args))

    for command, handler, help_text in (
        ("state", _handle_state, "Print the scalet state"),
        ("start", _handle_start, "Start a scalet"),
        ("stop", _handle_stop, "Stop a scalet"),
        ("restart", _handle_restart, "Restart a scalet"),
    ):
        parser = subparsers.add_parser(command, help=help_text)
        _add_scalet_id(parser)
        add_flags(parser)
        parser.set_defaults(func=lambda args, handler=handler: _run(handler, args))

    parser = subparsers.add_parser("kill", help="Forcefully stop or delete a scalet")
    _add_scalet_id(parser)
    _add_ssh_key_id(parser)
    parser.add_argument(
        "--mode",
        required=True,
        choices=[mode.value for mode in KillMode],
        help="'stop' powers the scalet off, 'delete' removes it with its SSH key",
    )
    add_flags(parser)
    parser.set_defaults(func=lambda args: _run(_handle_kill, args))

    parser = subparsers.add_parser("remove", help="Delete a scalet and its SSH key")
    _add_scalet_id(parser)
    _add_ssh_key_id(parser, required=True)
    add_flags(parser)
    parser.set_defaults(func=lambda args: _run(_handle_remove, args))

    parser = subparsers.add_parser("url", help="Print the Docker endpoint URL for an address")
    parser.add_argument("--ip", required=True, help="Scalet public IP address")
    parser.set_defaults(func=handle_url)

    parser = subparsers.add_parser("flags", help="List driver options and their environment variables")
    parser.set_defaults(func=handle_flags)
