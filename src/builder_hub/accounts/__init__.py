"""Registered AWS accounts and cross-account trust verification."""

from builder_hub.accounts.models import (
    AwsAccountRecord,
    AwsAccountStatus,
    VerificationFailure,
    VerificationResult,
)
from builder_hub.accounts.verifier import AccountTrustVerifier

__all__ = [
    'AwsAccountRecord',
    'AwsAccountStatus',
    'VerificationFailure',
    'VerificationResult',
    'AccountTrustVerifier',
]
