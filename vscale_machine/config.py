"""Driver options: flag table, environment variables, YAML config and validation.

Each option is resolved from, in order: the command-line flag, the YAML config
file, the environment variable, and finally the built-in default.
"""

import logging
import os
from dataclasses import dataclass

import yaml

from vscale_machine.errors import ConfigError, CredentialError
from vscale_machine.provisioning.types import HostRecord, PollPolicy
from vscale_machine.provisioning.vscale import DEFAULT_API_URL

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "spb0"
DEFAULT_RPLAN = "small"
DEFAULT_MADE_FROM = "ubuntu_14.04_64_002_master"
DEFAULT_SWAP_FILE = 0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_MAX_ATTEMPTS = 120

FLAG_PREFIX = "vscale-"


@dataclass(frozen=True)
class Flag:
    """One driver option as exposed to the host manager."""

    name: str
    env_var: str
    usage: str
    kind: type = str
    default: object = None

    @property
    def key(self) -> str:
        """Config file key: the flag name without the driver prefix."""
        return self.name.removeprefix(FLAG_PREFIX)

    @property
    def dest(self) -> str:
        return self.name.replace("-", "_")


CREATE_FLAGS = [
    Flag("vscale-access-token", "VSCALE_ACCESS_TOKEN", "Vscale access token", default=""),
    Flag("vscale-location", "VSCALE_LOCATION", "Vscale location", default=DEFAULT_LOCATION),
    Flag("vscale-rplan", "VSCALE_RPLAN", "Vscale rplan", default=DEFAULT_RPLAN),
    Flag("vscale-made-from", "VSCALE_MADE_FROM", "Vscale made from", default=DEFAULT_MADE_FROM),
    Flag("vscale-swap-file", "VSCALE_SWAP_FILE", "Vscale swap file size in MB (0 disables swap)", int, DEFAULT_SWAP_FILE),
    Flag("vscale-api-url", "VSCALE_API_URL", "Vscale API base URL", default=DEFAULT_API_URL),
    Flag("vscale-poll-interval", "VSCALE_POLL_INTERVAL", "Seconds between status polls", float, DEFAULT_POLL_INTERVAL),
    Flag(
        "vscale-poll-max-attempts",
        "VSCALE_POLL_MAX_ATTEMPTS",
        "Maximum status polls while waiting for an IP address",
        int,
        DEFAULT_POLL_MAX_ATTEMPTS,
    ),
    Flag(
        "vscale-best-effort-cleanup",
        "VSCALE_BEST_EFFORT_CLEANUP",
        "Ignore SSH key deletion failures on remove",
        bool,
        False,
    ),
]


def create_flags():
    """Return the list of driver flags."""
    return list(CREATE_FLAGS)


@dataclass
class DriverOptions:
    """Resolved driver options."""

    access_token: str = ""
    location: str = DEFAULT_LOCATION
    rplan: str = DEFAULT_RPLAN
    made_from: str = DEFAULT_MADE_FROM
    swap_file: int = DEFAULT_SWAP_FILE
    api_url: str = DEFAULT_API_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS
    best_effort_cleanup: bool = False

    def validate(self) -> None:
        """Check option values before any provider call is made."""
        if not self.access_token:
            raise CredentialError("vscale driver requires the --vscale-access-token option")
        if self.swap_file < 0:
            raise ConfigError(f"--vscale-swap-file must be >= 0, got {self.swap_file}")
        if self.poll_interval < 0:
            raise ConfigError(f"--vscale-poll-interval must be >= 0, got {self.poll_interval}")
        if self.poll_max_attempts < 1:
            raise ConfigError(f"--vscale-poll-max-attempts must be >= 1, got {self.poll_max_attempts}")

    @property
    def poll_policy(self) -> PollPolicy:
        return PollPolicy(interval=self.poll_interval, max_attempts=self.poll_max_attempts)

    def host_record(self, machine_name="", store_path="") -> HostRecord:
        return HostRecord(
            access_token=self.access_token,
            machine_name=machine_name,
            store_path=store_path,
            plan=self.rplan,
            image=self.made_from,
            location=self.location,
            swap_size_mb=self.swap_file,
        )


def load_config_file(config_path: str) -> dict:
    """Load driver options from a YAML mapping."""
    try:
        with open(os.path.expanduser(config_path)) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file '{config_path}' not found.") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config file '{config_path}' must contain a mapping")

    known = {flag.key for flag in CREATE_FLAGS}
    unknown = sorted(key for key in config if str(key).replace("_", "-") not in known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
    return config


def _convert(flag, value):
    if flag.kind is bool:
        if value is None or isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if value is None:
        return value
    if isinstance(value, bool):
        raise ConfigError(f"Invalid value for --{flag.name}: {value!r}")
    if flag.kind is int and isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"Invalid value for --{flag.name}: {value!r} is not a whole number")
    if isinstance(value, flag.kind):
        return value
    try:
        return flag.kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for --{flag.name}: {value!r}") from e


def resolve_options(flag_values=None, file_config=None, env=None) -> DriverOptions:
    """Resolve every option from flags, config file, environment and defaults.

    Args:
        flag_values: mapping of flag dest (``vscale_location``) to value;
            ``None`` values count as unset.
        file_config: mapping loaded by ``load_config_file``.
        env: environment mapping, defaults to ``os.environ``.
    """
    flag_values = flag_values or {}
    file_config = file_config or {}
    env = os.environ if env is None else env

    values = {}
    for flag in CREATE_FLAGS:
        value = flag_values.get(flag.dest)
        if value is None:
            value = file_config.get(flag.key, file_config.get(flag.key.replace("-", "_")))
        if value is None:
            value = env.get(flag.env_var) or None
        if value is None:
            value = flag.default
        values[flag.key.replace("-", "_")] = _convert(flag, value)

    return DriverOptions(**values)


def add_flags(parser) -> None:
    """Register every driver flag on an argparse parser.

    Defaults stay ``None`` so ``resolve_options`` can tell unset flags apart.
    """
    parser.add_argument("--config", default=None, help="YAML file with driver options")
    for flag in CREATE_FLAGS:
        help_text = f"{flag.usage} (env: {flag.env_var}"
        help_text += f", default: {flag.default})" if flag.kind is not bool and flag.default not in (None, "") else ")"
        if flag.kind is bool:
            parser.add_argument(f"--{flag.name}", action="store_true", default=None, help=help_text)
        else:
            parser.add_argument(f"--{flag.name}", type=flag.kind, default=None, help=help_text)


def options_from_args(args) -> DriverOptions:
    """Resolve and validate driver options from parsed CLI arguments."""
    file_config = load_config_file(args.config) if getattr(args, "config", None) else None
    options = resolve_options(vars(args), file_config)
    options.validate()
    return options
