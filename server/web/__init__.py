"""
Web module for the networked transport (HTTP).

Handles:
- Liveness endpoint
- Authenticated action endpoints
- Error responses with status codes
"""
