"""
Server logging module.

This module handles server-side logging functionality.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from common.constants import LOG_DIR, ACTION_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: str = LOG_DIR, log_level: int = logging.INFO):
        self.logs_dir = Path(logs_dir)

        # Set up main logger
        self.logger = logging.getLogger('power_server')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

        # Audit trail of executed power actions
        self.action_log_path = self.logs_dir / ACTION_LOG_FILE

    def set_logs_dir(self, logs_dir: str):
        """Point the audit trail at another directory."""
        self.logs_dir = Path(logs_dir)
        self.action_log_path = self.logs_dir / ACTION_LOG_FILE

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

    def log_auth_accepted(self, source: str):
        """Log an authenticated request."""
        self.info(f"[AUTH] Request authenticated from {source}")

    def log_auth_rejected(self, source: str, reason: str, provided: Optional[str] = None,
                          expected: Optional[str] = None):
        """Log a rejected request; only key prefixes and lengths are shown."""
        self.warning(f"[AUTH] Request rejected ({reason}) from {source}")
        if provided is not None and expected is not None:
            self.debug(f"[AUTH]    Received: \"{provided[:3]}...\" (length: {len(provided)})")
            self.debug(f"[AUTH]    Expected: \"{expected[:3]}...\" (length: {len(expected)})")

    def log_action(self, action: str, transport: str, source: str, delay: int = 0, force: bool = False):
        """Log a requested power action."""
        self.info(f"[{action.upper()}] Requested via {transport} from {source} (delay: {delay}s, force: {force})")

    def log_action_result(self, action: str, transport: str, source: str, success: bool, message: str):
        """Log the outcome of an action and append it to the audit trail."""
        status = "OK" if success else "FAILED"
        if success:
            self.info(f"[{action.upper()}] {message}")
        else:
            self.error(f"[{action.upper()}] {message}")
        self._write_to_file(self.action_log_path, f"{datetime.now().isoformat()} | {status} | {action} | VIA: {transport} | FROM: {source} | {message}")

    def log_serial_connection(self, address: str, connected: bool):
        """Log a serial client connecting or disconnecting."""
        if connected:
            self.info(f"[BT] Client connected: {address}")
        else:
            self.info(f"[BT] Client disconnected: {address}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_to_file(self, file_path: Path, content: str):
        """Write content to log file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'a', encoding='utf-8') as f:
                f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {file_path}: {e}")


# Global logger instance
logger = ServerLogger()
