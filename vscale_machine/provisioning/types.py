"""Shared data types for the Vscale driver."""

import enum
import os
from dataclasses import dataclass

SSH_KEY_FILENAME = "id_rsa"


class MachineState(enum.Enum):
    """Machine state as reported to the host-lifecycle manager."""

    NONE = "None"
    RUNNING = "Running"
    STOPPED = "Stopped"
    STARTING = "Starting"
    ERROR = "Error"


class KillMode(enum.Enum):
    """What a forceful kill does to the scalet."""

    FORCE_STOP = "stop"
    FORCE_DELETE = "delete"


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-interval polling bounded by a maximum number of attempts."""

    interval: float = 1.0
    max_attempts: int = 120


@dataclass
class HostRecord:
    """Persistent identity of one managed scalet."""

    access_token: str
    machine_name: str = ""
    store_path: str = ""
    plan: str = "small"
    image: str = "ubuntu_14.04_64_002_master"
    location: str = "spb0"
    swap_size_mb: int = 0
    scalet_id: int | None = None
    ssh_key_id: int | None = None
    ip_address: str = ""
    ssh_user: str = "root"
    ssh_port: int = 22

    @property
    def ssh_key_path(self) -> str:
        """Private key path inside the machine store directory."""
        return os.path.join(self.store_path, SSH_KEY_FILENAME)

    @property
    def public_key_path(self) -> str:
        return self.ssh_key_path + ".pub"

    @property
    def address(self) -> str:
        """SSH address string (user@host)."""
        return f"{self.ssh_user}@{self.ip_address}" if self.ssh_user else self.ip_address

    @property
    def created(self) -> bool:
        return self.scalet_id is not None and self.ssh_key_id is not None

    def assign_ip(self, address: str) -> None:
        """Record the public address; it can be learned only once."""
        if self.ip_address and self.ip_address != address:
            raise ValueError(f"IP address already assigned ({self.ip_address}), refusing to change it to {address}")
        self.ip_address = address

    def to_dict(self) -> dict:
        """Serializable view of the record without the access token."""
        return {
            "machine_name": self.machine_name,
            "store_path": self.store_path,
            "scalet_id": self.scalet_id,
            "ssh_key_id": self.ssh_key_id,
            "ip_address": self.ip_address,
            "plan": self.plan,
            "image": self.image,
            "location": self.location,
            "swap_size_mb": self.swap_size_mb,
            "ssh_user": self.ssh_user,
            "ssh_port": self.ssh_port,
        }
