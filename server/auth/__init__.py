"""
Authentication module for the power control server.

Handles:
- Shared secret validation
- Credential extraction from request bodies and headers
"""
