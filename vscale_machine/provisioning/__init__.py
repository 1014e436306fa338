"""Scalet provisioning: types, Vscale API helpers, SSH helpers, the driver."""

from vscale_machine.provisioning.driver import VscaleDriver, docker_url, map_status
from vscale_machine.provisioning.shell import run_shell_cmd
from vscale_machine.provisioning.ssh import generate_ssh_key, run_ssh_command, ssh_base_args, wait_for_ssh
from vscale_machine.provisioning.swap import swap_file_command
from vscale_machine.provisioning.types import HostRecord, KillMode, MachineState, PollPolicy

__all__ = [
    "VscaleDriver",
    "HostRecord",
    "KillMode",
    "MachineState",
    "PollPolicy",
    "docker_url",
    "map_status",
    "run_shell_cmd",
    "generate_ssh_key",
    "run_ssh_command",
    "ssh_base_args",
    "wait_for_ssh",
    "swap_file_command",
]
