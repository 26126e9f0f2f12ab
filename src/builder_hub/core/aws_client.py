"""Centralized AWS client management for the broker identity.

This module owns the hub's own boto3 session (the broker identity used to
assume roles into registered accounts) and builds short-lived sessions
from temporary STS credentials.
"""

from typing import Any, Dict, Optional
import boto3
from botocore.exceptions import (
    NoCredentialsError,
    ClientError,
    ProfileNotFound,
)


DEFAULT_REGION = "us-east-1"


class AWSClientManager:
    """Broker session and client cache.

    Clients created from the broker session are cached per service and
    region. Sessions built from assumed-role credentials are never cached.
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region_name: Optional[str] = None,
        validate: bool = True,
    ) -> None:
        """Initialize AWS client manager.

        Args:
            profile_name: Optional AWS profile name for broker credentials
            region_name: Optional default region for broker clients
            validate: Whether to check broker credentials with STS up front

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._profile_name = profile_name
        self._region_name = region_name
        if validate:
            self._validate_credentials()

    def _validate_credentials(self) -> None:
        """Validate broker credentials are available and working.

        Raises:
            NoCredentialsError: When AWS credentials are not available
            ProfileNotFound: When specified profile doesn't exist
        """
        try:
            session = self._get_session()
            sts_client = session.client("sts", region_name=self.get_current_region())
            sts_client.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("InvalidClientTokenId", "ExpiredToken"):
                raise NoCredentialsError()
            raise

    def _get_session(self) -> boto3.Session:
        """Get or create the broker boto3 session."""
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(
                    profile_name=self._profile_name, region_name=self._region_name
                )
            else:
                self._session = boto3.Session(region_name=self._region_name)
        return self._session

    def get_client(self, service_name: str, region_name: Optional[str] = None):
        """Get broker client for a service and region.

        Args:
            service_name: AWS service name (e.g., 'sts', 'ec2')
            region_name: AWS region name; defaults to the current region

        Returns:
            Cached boto3 client
        """
        region = region_name or self.get_current_region()
        client_key = f"{service_name}_{region}"

        if client_key not in self._clients:
            session = self._get_session()
            self._clients[client_key] = session.client(
                service_name, region_name=region
            )

        return self._clients[client_key]

    def get_current_region(self) -> str:
        """Get current AWS region, falling back to us-east-1."""
        if self._region_name:
            return self._region_name
        session = self._get_session()
        return session.region_name or DEFAULT_REGION

    def get_account_id(self) -> str:
        """Get the broker account ID.

        Raises:
            ClientError: When unable to get account information
        """
        sts_client = self.get_client("sts")
        response = sts_client.get_caller_identity()
        return response["Account"]

    def session_for_credentials(
        self, credentials: Dict[str, Any], region_name: Optional[str] = None
    ) -> boto3.Session:
        """Build a session from temporary STS credentials.

        Args:
            credentials: The ``Credentials`` block of an AssumeRole response
            region_name: Region for clients created from the session

        Returns:
            New boto3 session bound to the temporary credentials
        """
        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region_name or self.get_current_region(),
        )

    def assume_role_session(
        self,
        role_arn: str,
        session_name: str,
        external_id: Optional[str] = None,
        region_name: Optional[str] = None,
        duration_seconds: Optional[int] = None,
    ) -> boto3.Session:
        """Assume a role with the broker identity and return its session.

        Raises:
            ClientError: When STS rejects the AssumeRole request
        """
        params: Dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name,
        }
        if duration_seconds is not None:
            params["DurationSeconds"] = duration_seconds
        if external_id and external_id.strip():
            params["ExternalId"] = external_id

        response = self.get_client("sts", region_name).assume_role(**params)
        return self.session_for_credentials(response["Credentials"], region_name)

    def clear_cache(self) -> None:
        """Clear cached clients to force recreation."""
        self._clients.clear()
