import asyncio
from bleak import BleakScanner

from ossmctl.core import OSSM_DEVICE_NAME, PRIMARY_SERVICE_UUID


async def main():
    """Scan for BLE devices and print them, flagging OSSM candidates."""
    print("Scanning for BLE devices...")
    discovered = await BleakScanner.discover(return_adv=True)
    print(f"\nFound {len(discovered)} device(s):\n")
    for device, adv in discovered.values():
        is_ossm = (
            device.name == OSSM_DEVICE_NAME
            or PRIMARY_SERVICE_UUID in (adv.service_uuids or [])
        )
        print(f"{'*' if is_ossm else ' '} {device} rssi={adv.rssi}")


if __name__ == "__main__":
    asyncio.run(main())
