"""
Transport module for delivering actions to the host.

Handles:
- Networked (HTTP) request/response transport
- Serial (Bluetooth RFCOMM) transport with one connection at a time
- Mapping channel failures onto typed errors
"""
