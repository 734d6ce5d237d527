#!/usr/bin/env python3
"""
Unit tests for the shared-secret authentication guard.
"""

import unittest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.errors import AuthRequiredError, InvalidCredentialError
from server.auth.guard import AuthGuard, RejectReason, credential_from


class TestAuthGuard(unittest.TestCase):
    """Test cases for credential checks."""

    def setUp(self):
        self.guard = AuthGuard('s3cret')

    def test_matching_credential_is_allowed(self):
        result = self.guard.authenticate('s3cret')
        self.assertTrue(result.allowed)
        self.assertIsNone(result.to_error())

    def test_whitespace_is_trimmed_on_both_sides(self):
        self.assertTrue(AuthGuard('  s3cret\n').authenticate(' s3cret ').allowed)

    def test_missing_credential_requires_auth(self):
        for provided in (None, ''):
            result = self.guard.authenticate(provided)
            self.assertFalse(result.allowed)
            self.assertIs(result.reason, RejectReason.AUTH_REQUIRED)
            self.assertIsInstance(result.to_error(), AuthRequiredError)

    def test_wrong_credential_is_invalid(self):
        result = self.guard.authenticate('guess')
        self.assertFalse(result.allowed)
        self.assertIs(result.reason, RejectReason.INVALID_CREDENTIAL)
        self.assertIsInstance(result.to_error(), InvalidCredentialError)

    def test_whitespace_only_credential_is_invalid(self):
        self.assertIs(self.guard.authenticate('   ').reason, RejectReason.INVALID_CREDENTIAL)

    def test_body_and_header_carriers_are_equivalent(self):
        by_body = self.guard.authenticate_request({'key': 's3cret'}, {})
        by_header = self.guard.authenticate_request({}, {'X-Shared-Secret': 's3cret'})
        self.assertTrue(by_body.allowed)
        self.assertTrue(by_header.allowed)

    def test_body_field_takes_precedence(self):
        self.assertEqual(credential_from({'key': 'a'}, {'X-Shared-Secret': 'b'}), 'a')
        self.assertEqual(credential_from({'key': ''}, {'X-Shared-Secret': 'b'}), 'b')
        self.assertIsNone(credential_from({}, {}))


if __name__ == '__main__':
    unittest.main()
