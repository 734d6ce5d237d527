"""
Executor module for server-side power operations.

Handles:
- Mapping authenticated actions onto the power control surface
- Host introspection for status queries
- Platform power commands
"""
