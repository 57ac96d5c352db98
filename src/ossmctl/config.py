"""
Runtime configuration and the persisted device address cache.
"""

import json
import logging
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .core import (
    COMMAND_SETTLE_DELAY,
    COMMAND_TIMEOUT,
    CONNECT_SETTLE_DELAY,
    NAVIGATION_HOP_TIMEOUT,
    POLL_INTERVAL,
    RECONNECT_BACKOFF,
    SAFETY_STOP_THRESHOLD,
    SCAN_TIMEOUT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    """Timing knobs for the controller, all in seconds.

    Attributes:
        command_settle_delay: Pause between a command write and its read-back
        connect_settle_delay: Pause after opening the link before discovery
        reconnect_backoff: Fixed wait between reconnect attempts
        safety_stop_threshold: Status silence after which a reconnect stops motion
        poll_interval: Cadence of wait_for_ready/get_state/wait_for_status
        command_timeout: Deadline for one queued exchange (None disables it)
        navigation_hop_timeout: Wait for the device to reach an intermediate page
        scan_timeout: BLE scan duration when pairing
    """

    command_settle_delay: float = COMMAND_SETTLE_DELAY
    connect_settle_delay: float = CONNECT_SETTLE_DELAY
    reconnect_backoff: float = RECONNECT_BACKOFF
    safety_stop_threshold: float = SAFETY_STOP_THRESHOLD
    poll_interval: float = POLL_INTERVAL
    command_timeout: Optional[float] = COMMAND_TIMEOUT
    navigation_hop_timeout: Optional[float] = NAVIGATION_HOP_TIMEOUT
    scan_timeout: float = SCAN_TIMEOUT


def get_cache_file() -> Path:
    """Get the standard cache file location for the device address."""
    # Check XDG_CACHE_HOME first (Linux/Unix standard)
    cache_dir = os.environ.get("XDG_CACHE_HOME")
    if cache_dir:
        cache_path = Path(cache_dir) / "ossmctl"
    else:
        system = platform.system()
        if system == "Darwin":
            cache_path = Path.home() / "Library" / "Caches" / "ossmctl"
        elif system == "Windows":
            local_appdata = os.environ.get("LOCALAPPDATA")
            if local_appdata:
                cache_path = Path(local_appdata) / "ossmctl"
            else:
                appdata = os.environ.get(
                    "APPDATA", str(Path.home() / "AppData" / "Roaming")
                )
                cache_path = Path(appdata) / "ossmctl"
        else:
            cache_path = Path.home() / ".cache" / "ossmctl"

    cache_path.mkdir(parents=True, exist_ok=True)
    return cache_path / "device_address.json"


def load_cached_address() -> Optional[str]:
    """Load the cached device address.

    Returns:
        Cached address string if available, None otherwise
    """
    try:
        cache_file = get_cache_file()
        if cache_file.exists():
            with open(cache_file, "r") as f:
                data = json.load(f)
                return data.get("address")
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load cached address: {e}")
    return None


def save_cached_address(address: str) -> None:
    """Save the device address to the cache file."""
    try:
        cache_file = get_cache_file()
        with open(cache_file, "w") as f:
            json.dump({"address": address}, f, indent=2)
        logger.info(f"Cached device address: {address}")
    except OSError as e:
        logger.warning(f"Failed to save cached address: {e}")


def clear_address_cache() -> None:
    """Remove the cached device address, forcing a scan on next pairing."""
    try:
        cache_file = get_cache_file()
        if cache_file.exists():
            cache_file.unlink()
            logger.info("Cleared cached device address")
    except OSError as e:
        logger.warning(f"Failed to clear cached address: {e}")
