"""Swap file setup command."""

SWAP_FILE = "/var/swap.img"


def swap_file_command(size_mb, path=SWAP_FILE):
    """Build the composite shell command that creates and enables a swap file.

    The file is filled from /dev/zero in 1 MB blocks, formatted, enabled and
    added to /etc/fstab so it survives reboots.
    """
    if size_mb <= 0:
        raise ValueError(f"Swap size must be positive, got {size_mb}")
    return (
        f"touch {path}"
        f" && chmod 600 {path}"
        f" && dd if=/dev/zero of={path} bs=1MB count={size_mb}"
        f" && mkswap {path}"
        f" && swapon {path}"
        f" && echo '{path}    none    swap    sw    0    0' >> /etc/fstab"
    )
