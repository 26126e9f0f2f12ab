"""Account registry value types.

Records are plain dataclasses. The repository hands out detached copies
and writes them back only when ``save`` is called.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AwsAccountStatus(Enum):
    """Trust state of a registered account."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    DISABLED = "DISABLED"


class VerificationFailure(Enum):
    """Why a verification attempt failed."""

    TRUST_DENIED = "TRUST_DENIED"
    IDENTITY_UNRESOLVABLE = "IDENTITY_UNRESOLVABLE"
    UNCLASSIFIED = "UNCLASSIFIED"


@dataclass
class AwsAccountRecord:
    """A registered AWS account and the role the hub assumes into it."""

    account_id: str
    account_name: str
    role_arn: str
    external_id: Optional[str] = None
    description: Optional[str] = None
    status: AwsAccountStatus = AwsAccountStatus.PENDING
    last_verified_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)


@dataclass
class VerificationResult:
    """Outcome of a single trust verification."""

    success: bool
    message: str
    resolved_account_id: Optional[str] = None
    resolved_arn: Optional[str] = None
    failure: Optional[VerificationFailure] = None
