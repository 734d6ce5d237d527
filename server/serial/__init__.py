"""
Serial module for the Bluetooth RFCOMM transport.

Handles:
- Line-oriented command reading
- Authentication and execution of serial commands
- Reply encoding
"""
