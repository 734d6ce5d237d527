"""
Client package for the Remote PC Power Control system.

This package contains all client-side functionality including:
- Host discovery on the local network
- WiFi and Bluetooth transports
- Command dispatch with countdowns
- Configuration and utilities
"""
