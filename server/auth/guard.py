"""
Authentication guard.

Every inbound action carries the shared secret, either as the ``key`` field
of the request body or in the ``X-Shared-Secret`` header. Both carriers are
compared the same way: trimmed, exact match against the configured secret.
"""

import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from common.constants import SECRET_BODY_FIELD, SECRET_HEADER
from common.errors import AuthRequiredError, InvalidCredentialError, RemotePowerError
from server.utils.logger import logger


class RejectReason(Enum):
    AUTH_REQUIRED = 'AuthRequired'
    INVALID_CREDENTIAL = 'InvalidCredential'


@dataclass(frozen=True)
class AuthResult:
    """Allow, or Reject with a reason."""
    allowed: bool
    reason: Optional[RejectReason] = None

    def to_error(self) -> Optional[RemotePowerError]:
        """The typed error matching a rejection, or None when allowed."""
        if self.allowed:
            return None
        if self.reason is RejectReason.AUTH_REQUIRED:
            return AuthRequiredError("Authentication required. Please provide a secret key.")
        return InvalidCredentialError("Invalid secret key. Access denied.")


ALLOW = AuthResult(True)


def credential_from(body: Optional[Mapping[str, Any]] = None,
                    headers: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Pick the credential from the body field, falling back to the header."""
    if body:
        value = body.get(SECRET_BODY_FIELD)
        if value not in (None, ''):
            return str(value)
    if headers:
        value = headers.get(SECRET_HEADER)
        if value:
            return str(value)
    return None


class AuthGuard:
    """Stateless shared-secret check."""

    def __init__(self, secret_key: str):
        self._secret = (secret_key or '').strip()

    def authenticate(self, provided: Optional[str], source: str = 'unknown') -> AuthResult:
        """Check a provided credential against the configured secret."""
        if provided is None or provided == '':
            logger.log_auth_rejected(source, RejectReason.AUTH_REQUIRED.value)
            return AuthResult(False, RejectReason.AUTH_REQUIRED)

        trimmed = str(provided).strip()
        if hmac.compare_digest(trimmed.encode('utf-8'), self._secret.encode('utf-8')):
            logger.log_auth_accepted(source)
            return ALLOW

        logger.log_auth_rejected(source, RejectReason.INVALID_CREDENTIAL.value,
                                 provided=trimmed, expected=self._secret)
        return AuthResult(False, RejectReason.INVALID_CREDENTIAL)

    def authenticate_request(self, body: Optional[Mapping[str, Any]] = None,
                             headers: Optional[Mapping[str, str]] = None,
                             source: str = 'unknown') -> AuthResult:
        """Authenticate whichever carrier delivered the credential."""
        return self.authenticate(credential_from(body, headers), source)
