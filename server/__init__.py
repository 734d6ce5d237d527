"""
Server package for the Remote PC Power Control system.

This package contains all server-side functionality including:
- HTTP and Bluetooth serial command servers
- Shared-secret authentication
- Power action execution
- Configuration and utilities
"""
