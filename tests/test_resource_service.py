"""Tests for cross-account resource listing."""

import logging
from datetime import datetime, timezone

import pytest
from unittest.mock import Mock
from botocore.exceptions import ClientError, EndpointConnectionError

from builder_hub.accounts.models import AwsAccountRecord, AwsAccountStatus
from builder_hub.accounts.service import AwsAccountService
from builder_hub.core.aws_client import AWSClientManager
from builder_hub.resources.service import ResourceService


def _account(pk, account_id, status=AwsAccountStatus.VERIFIED, external_id=None):
    return AwsAccountRecord(
        id=pk,
        account_id=account_id,
        account_name=f"account-{pk}",
        role_arn=f"arn:aws:iam::{account_id}:role/BuilderHubAccess",
        external_id=external_id,
        status=status,
    )


def _paged(*pages):
    client = Mock()
    client.get_paginator.return_value.paginate.return_value = list(pages)
    return client


def _client_error(code="AccessDenied"):
    return ClientError({"Error": {"Code": code, "Message": "denied"}}, "Describe")


@pytest.fixture
def verified():
    return _account(1, "111111111111", external_id="ext-1")


@pytest.fixture
def mock_account_service(verified):
    service = Mock(spec=AwsAccountService)
    service.find_verified_accounts.return_value = [verified]
    service.find_by_id.return_value = verified
    return service


@pytest.fixture
def service_clients():
    """Service clients returned by every assumed-role session."""
    return {}


@pytest.fixture
def mock_aws_client(service_clients):
    client = Mock(spec=AWSClientManager)
    client.get_current_region.return_value = "ap-northeast-2"

    def assume(role_arn, session_name, external_id=None, region_name=None):
        session = Mock()
        session.client.side_effect = lambda name, region_name=None: service_clients[name]
        return session

    client.assume_role_session.side_effect = assume
    return client


@pytest.fixture
def resources(mock_account_service, mock_aws_client):
    return ResourceService(mock_account_service, mock_aws_client, regions=["ap-northeast-2"])


class TestEC2Listing:
    """EC2 instance listing."""

    def test_list_ec2_instances(self, resources, service_clients):
        """Test EC2 instances are read across pages."""
        launched = datetime(2024, 1, 2, tzinfo=timezone.utc)
        service_clients["ec2"] = _paged(
            {"Reservations": [{"Instances": [{
                "InstanceId": "i-1",
                "InstanceType": "t3.micro",
                "State": {"Name": "running"},
                "PrivateIpAddress": "10.0.0.5",
                "Placement": {"AvailabilityZone": "ap-northeast-2a"},
                "LaunchTime": launched,
                "Tags": [{"Key": "Team", "Value": "ops"}, {"Key": "Name", "Value": "web"}],
            }]}]},
            {"Reservations": [{"Instances": [{"InstanceId": "i-2", "State": {"Name": "stopped"}}]}]},
        )

        instances = resources.list_ec2_instances()

        assert [i.instance_id for i in instances] == ["i-1", "i-2"]
        first = instances[0]
        assert first.name == "web"
        assert first.state == "running"
        assert first.public_ip_address is None
        assert first.availability_zone == "ap-northeast-2a"
        assert first.launch_time == launched
        assert first.account_id == "111111111111"
        assert first.region == "ap-northeast-2"
        assert instances[1].name is None
        service_clients["ec2"].get_paginator.assert_called_with("describe_instances")

    def test_assumes_account_role(self, resources, service_clients, mock_aws_client):
        """Test each listing assumes the account role with its external id."""
        service_clients["ec2"] = _paged({"Reservations": []})

        resources.list_ec2_instances(region="eu-west-1")

        args, kwargs = mock_aws_client.assume_role_session.call_args
        assert args[0] == "arn:aws:iam::111111111111:role/BuilderHubAccess"
        assert args[1].startswith("aws-builder-hub-")
        assert args[1][len("aws-builder-hub-"):].isdigit()
        assert kwargs == {"external_id": "ext-1", "region_name": "eu-west-1"}

    def test_scans_configured_regions(self, mock_account_service, mock_aws_client, service_clients):
        """Test every configured region is scanned."""
        service_clients["ec2"] = _paged({"Reservations": []})
        resources = ResourceService(
            mock_account_service, mock_aws_client, regions=["us-east-1", "eu-west-1"]
        )

        resources.list_ec2_instances()

        regions = [c.kwargs["region_name"] for c in mock_aws_client.assume_role_session.call_args_list]
        assert regions == ["us-east-1", "eu-west-1"]

    def test_default_regions(self, mock_account_service, mock_aws_client):
        """Test the default region list."""
        resources = ResourceService(mock_account_service, mock_aws_client)

        assert resources.regions == ["ap-northeast-2", "ap-northeast-1", "us-east-1"]


class TestAccountSelection:
    """Only verified accounts are contacted."""

    def test_single_account(self, resources, mock_account_service, service_clients):
        """Test listing a single verified account."""
        service_clients["ec2"] = _paged({"Vpcs": []})

        resources.list_vpcs(account_pk=1)

        mock_account_service.find_by_id.assert_called_once_with(1)
        mock_account_service.find_verified_accounts.assert_not_called()

    @pytest.mark.parametrize("status", [
        AwsAccountStatus.PENDING,
        AwsAccountStatus.FAILED,
        AwsAccountStatus.DISABLED,
    ])
    def test_unverified_account_skipped(self, resources, mock_account_service, mock_aws_client, status):
        """Test accounts that are not verified are never contacted."""
        mock_account_service.find_by_id.return_value = _account(2, "222222222222", status=status)

        assert resources.list_ec2_instances(account_pk=2) == []
        assert resources.list_s3_buckets(account_pk=2) == []
        mock_aws_client.assume_role_session.assert_not_called()

    def test_unknown_account(self, resources, mock_account_service, mock_aws_client):
        """Test an unknown account id lists nothing."""
        mock_account_service.find_by_id.return_value = None

        assert resources.list_rds_instances(account_pk=9) == []
        mock_aws_client.assume_role_session.assert_not_called()

    def test_no_verified_accounts(self, resources, mock_account_service, mock_aws_client):
        """Test listing with no verified accounts."""
        mock_account_service.find_verified_accounts.return_value = []

        assert resources.list_vpcs() == []
        mock_aws_client.assume_role_session.assert_not_called()


class TestPartialFailure:
    """A failing account or region does not abort the listing."""

    def test_failing_account_logged_and_skipped(
        self, resources, mock_account_service, verified, service_clients, mock_aws_client, caplog
    ):
        """Test a failing account is logged and the others still listed."""
        second = _account(3, "333333333333")
        mock_account_service.find_verified_accounts.return_value = [verified, second]
        service_clients["rds"] = _paged({"DBInstances": [{
            "DBInstanceIdentifier": "orders",
            "DBInstanceClass": "db.t3.micro",
            "Engine": "postgres",
            "EngineVersion": "16.1",
            "DBInstanceStatus": "available",
            "Endpoint": {"Address": "orders.example.rds.amazonaws.com", "Port": 5432},
            "AllocatedStorage": 20,
        }]})
        assume = mock_aws_client.assume_role_session.side_effect

        def deny_first(role_arn, *args, **kwargs):
            if "111111111111" in role_arn:
                raise _client_error()
            return assume(role_arn, *args, **kwargs)

        mock_aws_client.assume_role_session.side_effect = deny_first

        with caplog.at_level(logging.WARNING):
            databases = resources.list_rds_instances()

        assert [(d.db_instance_identifier, d.account_id) for d in databases] == [
            ("orders", "333333333333")
        ]
        assert databases[0].endpoint == "orders.example.rds.amazonaws.com"
        assert databases[0].port == 5432
        assert "Failed to fetch RDS instances for account 111111111111 in ap-northeast-2" in caplog.text

    def test_endpoint_error_skipped(self, resources, service_clients):
        """Test endpoint errors are skipped."""
        ec2 = Mock()
        ec2.get_paginator.return_value.paginate.side_effect = EndpointConnectionError(
            endpoint_url="https://ec2.ap-northeast-2.amazonaws.com"
        )
        service_clients["ec2"] = ec2

        assert resources.list_vpcs() == []

    def test_rds_without_endpoint(self, resources, service_clients):
        """Test RDS instances without an endpoint yet."""
        service_clients["rds"] = _paged({"DBInstances": [{
            "DBInstanceIdentifier": "creating",
            "DBInstanceStatus": "creating",
        }]})

        database = resources.list_rds_instances()[0]

        assert database.endpoint is None
        assert database.port is None
        assert database.allocated_storage == 0


class TestVpcListing:
    """VPC listing."""

    def test_list_vpcs(self, resources, service_clients):
        """Test VPC listing with and without a Name tag."""
        service_clients["ec2"] = _paged({"Vpcs": [
            {"VpcId": "vpc-1", "CidrBlock": "10.0.0.0/16", "State": "available",
             "IsDefault": True, "Tags": [{"Key": "Name", "Value": "main"}]},
            {"VpcId": "vpc-2", "CidrBlock": "10.1.0.0/16", "State": "pending"},
        ]})

        vpcs = resources.list_vpcs()

        assert [(v.vpc_id, v.name, v.is_default) for v in vpcs] == [
            ("vpc-1", "main", True),
            ("vpc-2", None, False),
        ]


class TestS3Listing:
    """S3 bucket listing."""

    def test_list_s3_buckets(self, resources, service_clients, mock_aws_client):
        """Test S3 buckets are listed once per account with their region."""
        created = datetime(2023, 6, 1, tzinfo=timezone.utc)
        s3 = Mock()
        s3.list_buckets.return_value = {"Buckets": [
            {"Name": "logs", "CreationDate": created},
            {"Name": "assets", "CreationDate": created},
            {"Name": "locked", "CreationDate": created},
        ]}
        locations = {
            "logs": {"LocationConstraint": "ap-northeast-2"},
            "assets": {"LocationConstraint": None},
        }

        def location(Bucket):
            if Bucket not in locations:
                raise _client_error()
            return locations[Bucket]

        s3.get_bucket_location.side_effect = location
        service_clients["s3"] = s3

        buckets = resources.list_s3_buckets()

        assert [(b.name, b.region) for b in buckets] == [
            ("logs", "ap-northeast-2"),
            ("assets", "us-east-1"),
            ("locked", None),
        ]
        assert buckets[0].creation_date == created
        assert mock_aws_client.assume_role_session.call_count == 1

    def test_s3_failure_logged(self, resources, service_clients, caplog):
        """Test an S3 listing failure is logged."""
        s3 = Mock()
        s3.list_buckets.side_effect = _client_error()
        service_clients["s3"] = s3

        with caplog.at_level(logging.WARNING):
            assert resources.list_s3_buckets() == []

        assert "Failed to fetch S3 buckets for account 111111111111" in caplog.text
