"""Cross-account trust verification.

The verifier assumes an account's role with the broker identity, then
resolves the caller identity with the temporary credentials. Only a
successful identity call marks the account verified; every failure is
reported through the returned ``VerificationResult``.
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError, ParamValidationError

from ..core.aws_client import AWSClientManager
from ..core.config import DEFAULT_SESSION_NAME, MAX_SESSION_DURATION_SECONDS
from .models import (
    AwsAccountRecord,
    AwsAccountStatus,
    VerificationFailure,
    VerificationResult,
    now_utc,
)


logger = logging.getLogger(__name__)


class _StepFailed(Exception):
    """Internal marker carrying the failure kind of a verification step."""

    def __init__(self, failure: VerificationFailure, cause: Exception) -> None:
        super().__init__(str(cause))
        self.failure = failure
        self.cause = cause


class AccountTrustVerifier:
    """Verifies that the hub can assume and use an account's role."""

    def __init__(
        self,
        aws_client: AWSClientManager,
        session_name: str = DEFAULT_SESSION_NAME,
        duration_seconds: int = MAX_SESSION_DURATION_SECONDS,
    ) -> None:
        """Initialize verifier.

        Args:
            aws_client: Broker AWS client manager
            session_name: Role session name sent with AssumeRole
            duration_seconds: Requested session duration, capped at 900
        """
        self.aws_client = aws_client
        self.session_name = session_name
        self.duration_seconds = min(duration_seconds, MAX_SESSION_DURATION_SECONDS)

    def verify(self, account: AwsAccountRecord) -> VerificationResult:
        """Verify trust for an account and update its status in place.

        Sets ``status`` and, on success, ``last_verified_at``. The caller is
        responsible for persisting the record.

        Args:
            account: Account record to verify

        Returns:
            VerificationResult; never raises
        """
        try:
            credentials = self._assume_role(account)
            identity = self._resolve_identity(credentials)
        except _StepFailed as e:
            return self._fail(account, e.failure, e.cause)
        except Exception as e:
            return self._fail(account, VerificationFailure.UNCLASSIFIED, e)

        account.status = AwsAccountStatus.VERIFIED
        account.last_verified_at = now_utc()

        logger.info(
            f"Successfully verified AWS account: {account.account_name} ({account.account_id})"
        )

        return VerificationResult(
            success=True,
            message="Account verified successfully",
            resolved_account_id=identity.get("Account"),
            resolved_arn=identity.get("Arn"),
        )

    def _assume_role(self, account: AwsAccountRecord) -> Dict[str, Any]:
        """Request temporary credentials for the account role."""
        params: Dict[str, Any] = {
            "RoleArn": account.role_arn,
            "RoleSessionName": self.session_name,
            "DurationSeconds": self.duration_seconds,
        }
        external_id = self._external_id(account)
        if external_id:
            params["ExternalId"] = external_id

        sts_client = self.aws_client.get_client("sts")
        try:
            response = sts_client.assume_role(**params)
        except (ClientError, ParamValidationError) as e:
            # botocore rejects a malformed ARN before any request is sent
            raise _StepFailed(VerificationFailure.TRUST_DENIED, e)

        return response["Credentials"]

    def _resolve_identity(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        """Call GetCallerIdentity with the temporary credentials."""
        session = self.aws_client.session_for_credentials(credentials)
        try:
            return session.client("sts").get_caller_identity()
        except ClientError as e:
            raise _StepFailed(VerificationFailure.IDENTITY_UNRESOLVABLE, e)

    @staticmethod
    def _external_id(account: AwsAccountRecord) -> Optional[str]:
        if account.external_id and account.external_id.strip():
            return account.external_id
        return None

    def _fail(
        self,
        account: AwsAccountRecord,
        failure: VerificationFailure,
        cause: Exception,
    ) -> VerificationResult:
        logger.error(
            f"Failed to verify AWS account: {account.account_id} - {cause}"
        )
        account.status = AwsAccountStatus.FAILED

        return VerificationResult(
            success=False,
            message=f"Verification failed: {cause}",
            failure=failure,
        )
