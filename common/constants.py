"""
Shared constants for the Remote PC Power Control system.

This module contains all constants used across client and server components.
"""

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 3000

# Timeouts (seconds)
COMMAND_TIMEOUT = 10.0
LIVENESS_TIMEOUT = 3.0
SERIAL_REPLY_TIMEOUT = 5.0
COUNTDOWN_TICK = 1.0

# Authentication
SECRET_HEADER = 'X-Shared-Secret'
SECRET_BODY_FIELD = 'key'

# Bluetooth Serial Port Profile
BT_SERVICE_NAME = 'Remote PC Power'
BT_SPP_UUID = '00001101-0000-1000-8000-00805F9B34FB'
BT_CHANNEL = 1

# Serial line framing
LINE_TERMINATOR = '\n'
MAX_LINE_LENGTH = 4096

# Discovery
HOTSPOT_PREFIXES = [
    '192.168.43',   # Android hotspot default
    '192.168.137',  # Windows mobile hotspot
    '192.168.49',   # Some Android versions
]
QUICK_SCAN_HOST_LIMIT = 30
QUICK_SCAN_BATCH_SIZE = 10
QUICK_SCAN_TIMEOUT = 0.8
BROAD_SCAN_BATCH_SIZE = 20
BROAD_SCAN_TIMEOUT = 1.5
SUBNET_SCAN_BATCH_SIZE = 25
SUBNET_SCAN_TIMEOUT = 1.5

# Logging
LOG_DIR = 'logs'
ACTION_LOG_FILE = 'power_actions.log'


# Actions
class Actions:
    SHUTDOWN = 'shutdown'
    RESTART = 'restart'
    SLEEP = 'sleep'
    HIBERNATE = 'hibernate'
    LOGOUT = 'logout'
    CANCEL = 'cancel'
    STATUS = 'status'

    # Serial-only liveness probe
    PING = 'ping'

    ALL = (SHUTDOWN, RESTART, SLEEP, HIBERNATE, LOGOUT, CANCEL, STATUS)
    # Actions that accept delay/force options
    TIMED = (SHUTDOWN, RESTART)
    # Actions that change power state
    POWER = (SHUTDOWN, RESTART, SLEEP, HIBERNATE, LOGOUT, CANCEL)


# Error codes carried in HTTP error bodies
class ErrorCodes:
    AUTH_REQUIRED = 'AUTH_REQUIRED'
    INVALID_KEY = 'INVALID_KEY'
    NOT_FOUND = 'NOT_FOUND'
    INVALID_REQUEST = 'INVALID_REQUEST'
    UNREACHABLE = 'UNREACHABLE'
    TIMEOUT = 'TIMEOUT'
    DISCONNECTED = 'DISCONNECTED'
    BUSY = 'BUSY'
    UNAVAILABLE = 'UNAVAILABLE'
    MALFORMED_RESPONSE = 'MALFORMED_RESPONSE'
    MALFORMED_COMMAND = 'MALFORMED_COMMAND'
    SCAN_EXHAUSTED = 'SCAN_EXHAUSTED'

    @staticmethod
    def action_failed(action: str) -> str:
        """Build the failure code for an action, e.g. SHUTDOWN_FAILED."""
        return f"{action.upper()}_FAILED"
