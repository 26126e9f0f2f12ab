"""Resource listing across verified AWS accounts.

Each listing assumes the account role with the broker identity and reads
one service per region. Accounts that are not VERIFIED are never
contacted. A failure for one account or region is logged and skipped so
the rest of the listing still returns.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..accounts.models import AwsAccountRecord, AwsAccountStatus
from ..accounts.service import AwsAccountService
from ..core.aws_client import AWSClientManager
from ..core.config import DEFAULT_RESOURCE_REGIONS


logger = logging.getLogger(__name__)

SESSION_NAME_PREFIX = "aws-builder-hub-"


@dataclass
class EC2Instance:
    instance_id: str
    name: Optional[str]
    instance_type: str
    state: str
    public_ip_address: Optional[str]
    private_ip_address: Optional[str]
    availability_zone: Optional[str]
    launch_time: Optional[datetime]
    account_id: str
    account_name: str
    region: str


@dataclass
class RDSInstance:
    db_instance_identifier: str
    db_instance_class: str
    engine: str
    engine_version: str
    status: str
    endpoint: Optional[str]
    port: Optional[int]
    availability_zone: Optional[str]
    allocated_storage: int
    account_id: str
    account_name: str
    region: str


@dataclass
class S3Bucket:
    name: str
    creation_date: Optional[datetime]
    region: Optional[str]
    account_id: str
    account_name: str


@dataclass
class VPC:
    vpc_id: str
    cidr_block: str
    state: str
    is_default: bool
    name: Optional[str]
    account_id: str
    account_name: str
    region: str


def _name_tag(tags: Optional[List[dict]]) -> Optional[str]:
    for tag in tags or []:
        if tag.get("Key") == "Name":
            return tag.get("Value")
    return None


def _paginate(client, method_name: str, result_key: str) -> Iterator[dict]:
    for page in client.get_paginator(method_name).paginate():
        for item in page.get(result_key, []):
            yield item


class ResourceService:
    """Lists EC2, RDS, S3 and VPC resources of verified accounts."""

    def __init__(
        self,
        account_service: AwsAccountService,
        aws_client: AWSClientManager,
        regions: Optional[List[str]] = None,
    ) -> None:
        """Initialize resource service.

        Args:
            account_service: Registry providing the verified accounts
            aws_client: Broker AWS client manager
            regions: Regions scanned when no region is requested
        """
        self.account_service = account_service
        self.aws_client = aws_client
        self.regions = regions or list(DEFAULT_RESOURCE_REGIONS)

    def list_ec2_instances(
        self, account_pk: Optional[int] = None, region: Optional[str] = None
    ) -> List[EC2Instance]:
        return self._collect("EC2 instances", self._fetch_ec2_instances, account_pk, region)

    def list_rds_instances(
        self, account_pk: Optional[int] = None, region: Optional[str] = None
    ) -> List[RDSInstance]:
        return self._collect("RDS instances", self._fetch_rds_instances, account_pk, region)

    def list_vpcs(
        self, account_pk: Optional[int] = None, region: Optional[str] = None
    ) -> List[VPC]:
        return self._collect("VPCs", self._fetch_vpcs, account_pk, region)

    def list_s3_buckets(self, account_pk: Optional[int] = None) -> List[S3Bucket]:
        """List buckets once per account; S3 listing is global."""
        buckets: List[S3Bucket] = []
        for account in self._verified_accounts(account_pk):
            try:
                buckets.extend(self._fetch_s3_buckets(account))
            except (ClientError, BotoCoreError) as e:
                logger.warning(
                    f"Failed to fetch S3 buckets for account {account.account_id}: {e}"
                )
        return buckets

    def _collect(
        self,
        label: str,
        fetch: Callable[[AwsAccountRecord, str], List[Any]],
        account_pk: Optional[int],
        region: Optional[str],
    ) -> List[Any]:
        regions = [region] if region else self.regions
        results: List[Any] = []
        for account in self._verified_accounts(account_pk):
            for reg in regions:
                try:
                    results.extend(fetch(account, reg))
                except (ClientError, BotoCoreError) as e:
                    logger.warning(
                        f"Failed to fetch {label} for account {account.account_id} in {reg}: {e}"
                    )
        return results

    def _verified_accounts(self, account_pk: Optional[int]) -> List[AwsAccountRecord]:
        if account_pk is None:
            return self.account_service.find_verified_accounts()
        account = self.account_service.find_by_id(account_pk)
        if account is None or account.status != AwsAccountStatus.VERIFIED:
            return []
        return [account]

    def _session(self, account: AwsAccountRecord, region: str) -> boto3.Session:
        session_name = f"{SESSION_NAME_PREFIX}{int(time.time() * 1000)}"
        return self.aws_client.assume_role_session(
            account.role_arn,
            session_name,
            external_id=account.external_id,
            region_name=region,
        )

    def _fetch_ec2_instances(self, account: AwsAccountRecord, region: str) -> List[EC2Instance]:
        ec2 = self._session(account, region).client("ec2", region_name=region)
        instances = []
        for reservation in _paginate(ec2, "describe_instances", "Reservations"):
            for instance in reservation.get("Instances", []):
                instances.append(
                    EC2Instance(
                        instance_id=instance["InstanceId"],
                        name=_name_tag(instance.get("Tags")),
                        instance_type=instance.get("InstanceType", ""),
                        state=instance.get("State", {}).get("Name", ""),
                        public_ip_address=instance.get("PublicIpAddress"),
                        private_ip_address=instance.get("PrivateIpAddress"),
                        availability_zone=instance.get("Placement", {}).get("AvailabilityZone"),
                        launch_time=instance.get("LaunchTime"),
                        account_id=account.account_id,
                        account_name=account.account_name,
                        region=region,
                    )
                )
        return instances

    def _fetch_rds_instances(self, account: AwsAccountRecord, region: str) -> List[RDSInstance]:
        rds = self._session(account, region).client("rds", region_name=region)
        instances = []
        for db in _paginate(rds, "describe_db_instances", "DBInstances"):
            endpoint = db.get("Endpoint") or {}
            instances.append(
                RDSInstance(
                    db_instance_identifier=db["DBInstanceIdentifier"],
                    db_instance_class=db.get("DBInstanceClass", ""),
                    engine=db.get("Engine", ""),
                    engine_version=db.get("EngineVersion", ""),
                    status=db.get("DBInstanceStatus", ""),
                    endpoint=endpoint.get("Address"),
                    port=endpoint.get("Port"),
                    availability_zone=db.get("AvailabilityZone"),
                    allocated_storage=db.get("AllocatedStorage", 0),
                    account_id=account.account_id,
                    account_name=account.account_name,
                    region=region,
                )
            )
        return instances

    def _fetch_vpcs(self, account: AwsAccountRecord, region: str) -> List[VPC]:
        ec2 = self._session(account, region).client("ec2", region_name=region)
        return [
            VPC(
                vpc_id=vpc["VpcId"],
                cidr_block=vpc.get("CidrBlock", ""),
                state=vpc.get("State", ""),
                is_default=vpc.get("IsDefault", False),
                name=_name_tag(vpc.get("Tags")),
                account_id=account.account_id,
                account_name=account.account_name,
                region=region,
            )
            for vpc in _paginate(ec2, "describe_vpcs", "Vpcs")
        ]

    def _fetch_s3_buckets(self, account: AwsAccountRecord) -> List[S3Bucket]:
        region = self.aws_client.get_current_region()
        s3 = self._session(account, region).client("s3", region_name=region)
        response = s3.list_buckets()
        return [
            S3Bucket(
                name=bucket["Name"],
                creation_date=bucket.get("CreationDate"),
                region=self._bucket_region(s3, bucket["Name"]),
                account_id=account.account_id,
                account_name=account.account_name,
            )
            for bucket in response.get("Buckets", [])
        ]

    @staticmethod
    def _bucket_region(s3, bucket_name: str) -> Optional[str]:
        try:
            location = s3.get_bucket_location(Bucket=bucket_name)
        except ClientError:
            return None
        # Buckets in us-east-1 report no location constraint
        return location.get("LocationConstraint") or "us-east-1"
