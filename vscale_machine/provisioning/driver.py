"""Vscale machine driver: the lifecycle operations a host manager invokes.

Each operation maps onto one or a few Vscale API calls. Creation is the only
multi-step flow: upload a key, create the scalet, poll until it has a public
address, then optionally set up swap over SSH.
"""

import asyncio
import ipaddress
import logging

from vscale_machine.errors import CredentialError, DriverError, PollTimeoutError, ProviderError, ProvisioningError
from vscale_machine.provisioning import vscale as vscale_api
from vscale_machine.provisioning.ssh import generate_ssh_key, read_public_key, run_ssh_command, wait_for_ssh
from vscale_machine.provisioning.swap import swap_file_command
from vscale_machine.provisioning.types import HostRecord, KillMode, MachineState, PollPolicy

logger = logging.getLogger(__name__)

DRIVER_NAME = "vscale"
DOCKER_PORT = 2376

STATUS_MAP = {
    "started": MachineState.RUNNING,
    "stopped": MachineState.STOPPED,
    "defined": MachineState.STARTING,
}


def map_status(status):
    """Map a provider status string onto a MachineState; unknown statuses are NONE."""
    return STATUS_MAP.get(status, MachineState.NONE)


def docker_url(host, port=DOCKER_PORT):
    """Format a tcp:// URL, bracketing IPv6 literals."""
    try:
        if ipaddress.ip_address(host).version == 6:
            host = f"[{host}]"
    except ValueError:
        pass
    return f"tcp://{host}:{port}"


class VscaleDriver:
    """Lifecycle adapter for one Vscale scalet."""

    def __init__(self, record: HostRecord, poll_policy: PollPolicy | None = None, best_effort_cleanup: bool = False, api_url: str = vscale_api.DEFAULT_API_URL):
        self.record = record
        self.poll_policy = poll_policy or PollPolicy()
        self.best_effort_cleanup = best_effort_cleanup
        self.api_url = api_url

    def driver_name(self) -> str:
        return DRIVER_NAME

    def pre_create_check(self) -> None:
        if not self.record.access_token:
            raise CredentialError("vscale driver requires the --vscale-access-token option")

    def _require_scalet_id(self):
        if self.record.scalet_id is None:
            raise DriverError("Scalet ID is not set")
        return self.record.scalet_id

    # ── Creation ──────────────────────────────────────────────────

    async def _create_ssh_key(self):
        """Generate the local key pair and upload the public half.

        Returns:
            The provider-assigned key id.
        """
        await generate_ssh_key(self.record.ssh_key_path)
        public_key = read_public_key(self.record.public_key_path)
        key = await vscale_api.create_ssh_key(
            self.record.access_token,
            self.record.machine_name,
            public_key,
            api_url=self.api_url,
        )
        return key["id"]

    async def _wait_for_ip(self):
        """Poll the scalet until the provider reports a public address."""
        record = self.record
        policy = self.poll_policy
        for attempt in range(1, policy.max_attempts + 1):
            scalet = await vscale_api.get_scalet(record.access_token, record.scalet_id, api_url=self.api_url)
            address = vscale_api.public_address(scalet)
            if address:
                record.assign_ip(address)
                return address
            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.interval)

        raise PollTimeoutError(
            f"Scalet {record.scalet_id} has no public address after {policy.max_attempts} attempts"
        )

    async def _configure_swap(self):
        record = self.record
        logger.info(f"Creating SWAP file {record.swap_size_mb} MB")

        reachable = await wait_for_ssh(record.ip_address, record.ssh_user, record.ssh_port, record.ssh_key_path)
        if not reachable:
            raise ProvisioningError(f"SSH is not reachable on {record.address}:{record.ssh_port}")

        rc, _, stderr = await run_ssh_command(
            record.address,
            record.ssh_key_path,
            record.ssh_port,
            swap_file_command(record.swap_size_mb),
        )
        if rc != 0:
            raise ProvisioningError(f"Swap file setup failed with exit code {rc}: {stderr.strip()}")

    async def create(self) -> HostRecord:
        """Create the scalet and wait until it is reachable.

        Partial state is left in place on failure; use ``remove()`` to clean up.
        """
        self.pre_create_check()
        record = self.record

        logger.info("Creating SSH key...")
        record.ssh_key_id = await self._create_ssh_key()

        logger.info("Creating Vscale scalet...")
        scalet = await vscale_api.create_scalet(
            record.access_token,
            name=record.machine_name,
            make_from=record.image,
            rplan=record.plan,
            location=record.location,
            keys=[record.ssh_key_id],
            do_start=True,
            api_url=self.api_url,
        )
        record.scalet_id = scalet["ctid"]

        logger.info("Waiting for IP address to be assigned to the scalet...")
        await self._wait_for_ip()
        logger.info(f"Created scalet with ID: {record.scalet_id}, IPAddress: {record.ip_address}")

        if record.swap_size_mb > 0:
            await self._configure_swap()

        return record

    # ── State & power ─────────────────────────────────────────────

    async def get_state(self) -> MachineState:
        """Fetch the scalet and map its status.

        Raises:
            ProviderError: with ``state`` set to ``MachineState.ERROR`` if the fetch fails.
        """
        scalet_id = self._require_scalet_id()
        try:
            scalet = await vscale_api.get_scalet(self.record.access_token, scalet_id, api_url=self.api_url)
        except ProviderError as e:
            raise ProviderError(str(e), state=MachineState.ERROR) from e
        return map_status(scalet.get("status"))

    async def start(self) -> None:
        await vscale_api.start_scalet(self.record.access_token, self._require_scalet_id(), api_url=self.api_url)

    async def stop(self) -> None:
        await vscale_api.stop_scalet(self.record.access_token, self._require_scalet_id(), api_url=self.api_url)

    async def restart(self) -> None:
        await vscale_api.restart_scalet(self.record.access_token, self._require_scalet_id(), api_url=self.api_url)

    async def kill(self, mode: KillMode) -> None:
        """Forcefully stop or delete the scalet, as chosen by *mode*."""
        if mode is KillMode.FORCE_STOP:
            await self.stop()
        elif mode is KillMode.FORCE_DELETE:
            await self.remove()
        else:
            raise ValueError(f"Unknown kill mode: {mode!r}")

    # ── Removal ───────────────────────────────────────────────────

    async def remove(self) -> None:
        """Delete the scalet, then the SSH key it was created with.

        If deleting the scalet fails, the key is left untouched. A failure to
        delete the key is raised unless ``best_effort_cleanup`` is set.
        """
        record = self.record
        self._require_scalet_id()
        logger.info(f"Deleting scalet {record.scalet_id}...")
        await vscale_api.delete_scalet(record.access_token, record.scalet_id, api_url=self.api_url)

        if record.ssh_key_id is None:
            logger.warning(f"Warning: no SSH key ID recorded for scalet {record.scalet_id}, the uploaded key is kept")
            return

        logger.info(f"Deleting SSH key {record.ssh_key_id}...")
        try:
            await vscale_api.delete_ssh_key(record.access_token, record.ssh_key_id, api_url=self.api_url)
        except ProviderError as e:
            if not self.best_effort_cleanup:
                raise
            logger.warning(f"Warning: failed to delete SSH key {record.ssh_key_id}: {e}")

    # ── Connection info ───────────────────────────────────────────

    def get_ssh_hostname(self) -> str:
        if not self.record.ip_address:
            raise DriverError("IP address is not set")
        return self.record.ip_address

    def get_url(self) -> str:
        return docker_url(self.get_ssh_hostname())
