"""
Client logging module.

This module handles client-side logging functionality.
"""

import logging
import sys
from typing import List


class ClientLogger:
    """Client logging class."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger('power_client')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

    def set_level(self, log_level: int):
        """Change the log level of the logger and its handlers."""
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, target: str, success: bool):
        """Log connection attempt."""
        status = "Connected" if success else "Failed to connect"
        self.info(f"{status} to {target}")

    def log_scan_start(self, policy: str, total: int):
        """Log the start of a scan."""
        self.info(f"[SCAN] {policy} scan of {total} address(es)...")

    def log_scan_progress(self, fraction: float, found: List):
        """Log scan progress."""
        self.debug(f"[SCAN] {fraction * 100:.0f}% - {len(found)} host(s) found")

    def log_scan_result(self, found: List):
        """Log the hosts found by a scan."""
        self.info(f"[SCAN] Found {len(found)} PC(s) with the power service running")
        for device in found:
            self.info(f"  - {device.hostname or 'unknown'} at {device.ip}:{device.port} "
                      f"({device.response_time * 1000:.0f} ms)")

    def log_action_sent(self, action: str, transport: str):
        """Log an action leaving the client."""
        self.info(f"[ACTION] Sending {action} via {transport}")

    def log_action_result(self, action: str, success: bool, message: str):
        """Log the reply to an action."""
        if success:
            self.info(f"[SUCCESS] {action}: {message}")
        else:
            self.error(f"[ERROR] {action}: {message}")

    def log_countdown(self, action: str, remaining: int):
        """Log a countdown tick."""
        self.info(f"[COUNTDOWN] {action} in {remaining}s (repeat to cancel)")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")


# Global logger instance
logger = ClientLogger()
