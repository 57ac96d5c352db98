"""
Transport adapter between the controller and the BLE stack.

The controller only ever talks to the abstract Transport; BleakTransport is
the concrete adapter built on bleak.
"""

import abc
import logging
from typing import Any, Callable, Optional, Union

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from .core import OSSM_DEVICE_NAME, PRIMARY_SERVICE_UUID, SCAN_TIMEOUT

logger = logging.getLogger(__name__)

NotifyCallback = Callable[[bytes], None]


class Transport(abc.ABC):
    """Narrow interface over a GATT link to one device."""

    @property
    @abc.abstractmethod
    def is_connected(self) -> bool: ...

    @abc.abstractmethod
    async def connect(self) -> None: ...

    @abc.abstractmethod
    async def disconnect(self) -> None: ...

    @abc.abstractmethod
    def get_characteristic(self, service_uuid: str, char_uuid: str) -> Any:
        """Resolve a characteristic handle once services are discovered."""

    @abc.abstractmethod
    async def write_value(self, characteristic: Any, data: bytes) -> None: ...

    @abc.abstractmethod
    async def read_value(self, characteristic: Any) -> bytes: ...

    @abc.abstractmethod
    async def subscribe(self, characteristic: Any, on_notify: NotifyCallback) -> None: ...

    @abc.abstractmethod
    def on_unsolicited_disconnect(self, callback: Callable[[], None]) -> None:
        """Register the callback fired when the link drops without disconnect()."""


class BleakTransport(Transport):
    """Transport backed by a bleak BleakClient."""

    def __init__(self, device: Union[BLEDevice, str], timeout: float = 10.0) -> None:
        self._device = device
        self._client = BleakClient(
            device, disconnected_callback=self._on_bleak_disconnect, timeout=timeout
        )
        self._on_unsolicited: Optional[Callable[[], None]] = None
        self._disconnect_requested = False

    @property
    def address(self) -> str:
        return self._client.address

    @property
    def name(self) -> str:
        if isinstance(self._device, BLEDevice) and self._device.name:
            return self._device.name
        return OSSM_DEVICE_NAME

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    @classmethod
    async def discover(cls, timeout: float = SCAN_TIMEOUT) -> Optional[BLEDevice]:
        """Scan for an OSSM device.

        Returns:
            The first matching BLEDevice, or None if nothing was found
        """
        logger.info("Scanning for OSSM devices...")
        discovered = await BleakScanner.discover(timeout=timeout, return_adv=True)
        for device, adv in discovered.values():
            # Primary: advertised name
            if device.name == OSSM_DEVICE_NAME or adv.local_name == OSSM_DEVICE_NAME:
                logger.info(f"Found OSSM device: {device.name} ({device.address})")
                return device
            # Secondary: advertised primary service
            if PRIMARY_SERVICE_UUID in (adv.service_uuids or []):
                logger.info(
                    f"Found OSSM device by service: {device.name or 'Unknown'} ({device.address})"
                )
                return device
        logger.warning("No OSSM devices found")
        return None

    async def connect(self) -> None:
        self._disconnect_requested = False
        await self._client.connect()

    async def disconnect(self) -> None:
        self._disconnect_requested = True
        await self._client.disconnect()

    def get_characteristic(self, service_uuid: str, char_uuid: str) -> Any:
        service = self._client.services.get_service(service_uuid)
        if service is None:
            raise BleakError(f"Service {service_uuid} not found on device")
        characteristic = service.get_characteristic(char_uuid)
        if characteristic is None:
            raise BleakError(f"Characteristic {char_uuid} not found on device")
        return characteristic

    async def write_value(self, characteristic: Any, data: bytes) -> None:
        await self._client.write_gatt_char(characteristic, data, response=True)

    async def read_value(self, characteristic: Any) -> bytes:
        return bytes(await self._client.read_gatt_char(characteristic))

    async def subscribe(self, characteristic: Any, on_notify: NotifyCallback) -> None:
        await self._client.start_notify(
            characteristic, lambda _sender, data: on_notify(bytes(data))
        )

    def on_unsolicited_disconnect(self, callback: Callable[[], None]) -> None:
        self._on_unsolicited = callback

    def _on_bleak_disconnect(self, client: BleakClient) -> None:
        if self._disconnect_requested:
            logger.debug("Link closed on request")
            return
        logger.warning("Device disconnected")
        if self._on_unsolicited:
            try:
                self._on_unsolicited()
            except Exception as e:
                logger.error(f"Disconnect callback error: {e}")
