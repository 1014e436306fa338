"""SSH helpers: key generation, readiness polling and remote commands."""

import asyncio
import logging
import os

from vscale_machine.errors import CredentialError
from vscale_machine.provisioning.shell import run_shell_cmd

logger = logging.getLogger(__name__)


def ssh_base_args(address, ssh_key, ssh_port):
    """Build base SSH arguments."""
    args = [
        "ssh",
        "-o", "StrictHostKeyChecking=no",
        "-o", "UserKnownHostsFile=/dev/null",
        "-o", "BatchMode=yes",
        "-o", "LogLevel=quiet",
        "-o", "ServerAliveInterval=60",
        "-o", "ServerAliveCountMax=5",
    ]
    if ssh_key:
        args += ["-i", ssh_key]
    if ssh_port and ssh_port != 22:
        args += ["-p", str(ssh_port)]
    args.append(address)
    return args


async def generate_ssh_key(path, bits=2048):
    """Generate an RSA key pair at *path* unless one already exists.

    Raises:
        CredentialError: if ssh-keygen fails.
    """
    if os.path.exists(path):
        logger.info(f"Reusing existing SSH key {path}")
        return

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    rc, _, stderr = await run_shell_cmd(["ssh-keygen", "-q", "-t", "rsa", "-b", str(bits), "-N", "", "-f", path])
    if rc != 0:
        raise CredentialError(f"Failed to generate SSH key {path}: {stderr.strip()}")


def read_public_key(path):
    """Return the contents of a public key file.

    Raises:
        CredentialError: if the file cannot be read.
    """
    try:
        with open(path) as f:
            return f.read().strip()
    except OSError as e:
        raise CredentialError(f"Cannot read SSH public key {path}: {e}") from e


async def wait_for_ssh(host, username, ssh_port, ssh_key_path, timeout=300, interval=5):
    """Poll SSH connectivity until success or timeout.

    Returns:
        True if SSH connected, False on timeout.
    """
    address = f"{username}@{host}" if username else host
    elapsed = 0
    while elapsed < timeout:
        args = ssh_base_args(address, ssh_key_path, ssh_port)
        # Add ConnectTimeout for fast failure during polling
        args.insert(-1, "-o")
        args.insert(-1, "ConnectTimeout=5")
        args.append("exit 0")
        rc, _, _ = await run_shell_cmd(args, timeout=30)
        if rc == 0:
            return True
        await asyncio.sleep(interval)
        elapsed += interval

    logger.error(f"Timeout after {timeout}s waiting for SSH connectivity to {address}:{ssh_port}")
    return False


async def run_ssh_command(address, ssh_key, ssh_port, command, timeout=600):
    """Run *command* on the remote host in a single ssh invocation.

    Returns:
        (returncode, stdout, stderr) tuple
    """
    args = ssh_base_args(address, ssh_key, ssh_port)
    args.append(command)
    rc, stdout, stderr = await run_shell_cmd(args, timeout=timeout)
    if rc != 0 and stderr:
        logger.error(f"SSH error ({address}): {stderr.strip()}")
    return rc, stdout, stderr
