"""
Dispatcher module for client-side command handling.

Handles:
- Per-action countdown with cancel-on-repeat
- Input validation before anything is sent
- Routing actions to the active transport
"""
