"""
Core constants for the OSSM BLE command protocol.
"""

# Advertised name used for device discovery
OSSM_DEVICE_NAME = "OSSM"

# Primary GATT service and its characteristics
PRIMARY_SERVICE_UUID = "522b443a-4f53-534d-0001-420badbabe69"
COMMAND_CHAR_UUID = "522b443a-4f53-534d-1000-420badbabe69"
SPEED_KNOB_CONFIGURATION_CHAR_UUID = "522b443a-4f53-534d-1010-420badbabe69"
CURRENT_STATE_CHAR_UUID = "522b443a-4f53-534d-2000-420badbabe69"
PATTERN_LIST_CHAR_UUID = "522b443a-4f53-534d-3000-420badbabe69"
PATTERN_DESCRIPTION_CHAR_UUID = "522b443a-4f53-534d-3010-420badbabe69"

# Characteristics resolved on every connect, keyed by local name
REQUIRED_CHARACTERISTICS = {
    "command": COMMAND_CHAR_UUID,
    "speed_knob_configuration": SPEED_KNOB_CONFIGURATION_CHAR_UUID,
    "current_state": CURRENT_STATE_CHAR_UUID,
    "pattern_list": PATTERN_LIST_CHAR_UUID,
    "pattern_description": PATTERN_DESCRIPTION_CHAR_UUID,
}

# Percentage range shared by speed, stroke, depth and sensation
LEVEL_MIN = 0
LEVEL_MAX = 100

# Timing defaults in seconds
COMMAND_SETTLE_DELAY = 0.025
CONNECT_SETTLE_DELAY = 0.1
RECONNECT_BACKOFF = 0.25
SAFETY_STOP_THRESHOLD = 5.0
POLL_INTERVAL = 0.1
COMMAND_TIMEOUT = 5.0
NAVIGATION_HOP_TIMEOUT = 20.0
SCAN_TIMEOUT = 10.0

# Application metadata
__version__ = "0.1.0"
__description__ = "Connection and command engine for OSSM stroke actuators over BLE"
