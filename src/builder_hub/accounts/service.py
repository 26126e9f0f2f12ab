"""Account registry operations.

This module manages registered AWS accounts: creation with input
validation, partial updates, trust verification, disabling and deletion.
Each operation loads a record, computes the new state and persists it
explicitly through the repository.
"""

import logging
import re
from typing import List, Optional

from .models import AwsAccountRecord, AwsAccountStatus, VerificationResult
from .repository import AwsAccountRepository
from .verifier import AccountTrustVerifier


logger = logging.getLogger(__name__)

ACCOUNT_ID_PATTERN = re.compile(r"^[0-9]{12}$")
ROLE_ARN_PATTERN = re.compile(r"^arn:aws:iam::[0-9]{12}:role/.+$")
MAX_ACCOUNT_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


class AccountRegistryError(Exception):
    """Base exception for account registry operations."""
    pass


class AccountNotFoundError(AccountRegistryError):
    """Raised when no account exists for the given id."""
    pass


class AccountAlreadyExistsError(AccountRegistryError):
    """Raised when an AWS account id is registered twice."""
    pass


class AccountValidationError(AccountRegistryError):
    """Raised when account input is malformed."""
    pass


class AwsAccountService:
    """Registry of AWS accounts the hub can assume roles into."""

    def __init__(
        self, repository: AwsAccountRepository, verifier: AccountTrustVerifier
    ) -> None:
        """Initialize account service.

        Args:
            repository: Account persistence
            verifier: Trust verifier used by ``verify_account``
        """
        self.repository = repository
        self.verifier = verifier

    def find_all(self) -> List[AwsAccountRecord]:
        return self.repository.list_all()

    def find_by_id(self, pk: int) -> Optional[AwsAccountRecord]:
        return self.repository.get(pk)

    def find_by_account_id(self, account_id: str) -> Optional[AwsAccountRecord]:
        return self.repository.get_by_account_id(account_id)

    def find_verified_accounts(self) -> List[AwsAccountRecord]:
        """Accounts whose latest verification succeeded."""
        return self.repository.list_by_status(AwsAccountStatus.VERIFIED)

    def create_account(
        self,
        account_id: str,
        account_name: str,
        role_arn: str,
        external_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AwsAccountRecord:
        """Register a new account in PENDING state.

        Raises:
            AccountValidationError: When an input field is malformed
            AccountAlreadyExistsError: When the account id is already registered
        """
        self._validate_account_id(account_id)
        self._validate_account_name(account_name)
        self._validate_role_arn(role_arn)
        self._validate_description(description)

        if self.repository.exists_by_account_id(account_id):
            raise AccountAlreadyExistsError(
                f"AWS account with ID {account_id} already exists"
            )

        account = AwsAccountRecord(
            account_id=account_id,
            account_name=account_name,
            role_arn=role_arn,
            external_id=external_id,
            description=description,
            status=AwsAccountStatus.PENDING,
        )
        saved = self.repository.save(account)
        logger.info(f"Registered AWS account: {saved.account_name} ({saved.account_id})")
        return saved

    def update_account(
        self,
        pk: int,
        account_name: Optional[str] = None,
        role_arn: Optional[str] = None,
        external_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AwsAccountRecord:
        """Update the given fields; ``None`` leaves a field unchanged.

        Raises:
            AccountNotFoundError: When no account has this id
            AccountValidationError: When an input field is malformed
        """
        account = self._load(pk)

        if account_name is not None:
            self._validate_account_name(account_name)
            account.account_name = account_name
        if role_arn is not None:
            self._validate_role_arn(role_arn)
            account.role_arn = role_arn
        if external_id is not None:
            account.external_id = external_id
        if description is not None:
            self._validate_description(description)
            account.description = description

        return self.repository.save(account)

    def verify_account(self, pk: int) -> VerificationResult:
        """Run trust verification and persist the resulting status.

        Raises:
            AccountNotFoundError: When no account has this id
        """
        account = self._load(pk)
        result = self.verifier.verify(account)
        self.repository.save(account)
        return result

    def disable_account(self, pk: int) -> AwsAccountRecord:
        account = self._load(pk)
        account.status = AwsAccountStatus.DISABLED
        saved = self.repository.save(account)
        logger.info(f"Disabled AWS account: {saved.account_name} ({saved.account_id})")
        return saved

    def delete_account(self, pk: int) -> None:
        account = self._load(pk)
        self.repository.delete(pk)
        logger.info(f"Deleted AWS account: {account.account_name} ({account.account_id})")

    def _load(self, pk: int) -> AwsAccountRecord:
        account = self.repository.get(pk)
        if account is None:
            raise AccountNotFoundError(f"AWS account not found with id: {pk}")
        return account

    @staticmethod
    def _validate_account_id(account_id: str) -> None:
        if not account_id or not ACCOUNT_ID_PATTERN.match(account_id):
            raise AccountValidationError("Account ID must be 12 digits")

    @staticmethod
    def _validate_account_name(account_name: str) -> None:
        if not account_name or not account_name.strip():
            raise AccountValidationError("Account name is required")
        if len(account_name) > MAX_ACCOUNT_NAME_LENGTH:
            raise AccountValidationError(
                f"Account name must be between 1 and {MAX_ACCOUNT_NAME_LENGTH} characters"
            )

    @staticmethod
    def _validate_role_arn(role_arn: str) -> None:
        if not role_arn or not ROLE_ARN_PATTERN.match(role_arn):
            raise AccountValidationError(f"Invalid Role ARN format: {role_arn}")

    @staticmethod
    def _validate_description(description: Optional[str]) -> None:
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise AccountValidationError(
                f"Description must be less than {MAX_DESCRIPTION_LENGTH} characters"
            )
