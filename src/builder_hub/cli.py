#!/usr/bin/env python3
"""AWS Builder Hub - Command Line Entry Point.

Manages the account registry, runs trust verification, lists resources
across verified accounts and resolves provisioning templates.
"""

import argparse
import logging
import os
import sys
from dataclasses import asdict
from typing import List, Optional

import yaml

from builder_hub import __version__
from builder_hub.accounts.repository import AwsAccountRepository
from builder_hub.accounts.service import AccountRegistryError, AwsAccountService
from builder_hub.accounts.verifier import AccountTrustVerifier
from builder_hub.core.aws_client import AWSClientManager
from builder_hub.core.config import Configuration, ConfigurationError
from builder_hub.core.database import create_registry_engine, create_session_factory
from builder_hub.provisioning.templates import (
    InstanceTemplate,
    ModuleCatalog,
    ModuleCatalogError,
    UnknownModuleError,
    missing_mandatory_tags,
    resolve_template,
)
from builder_hub.resources.service import ResourceService


logger = logging.getLogger("builder_hub")

STATUS_SYMBOLS = {
    "PENDING": "⏳",
    "VERIFIED": "✅",
    "FAILED": "❌",
    "DISABLED": "⏭️",
}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="builder-hub",
        description="AWS Builder Hub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s accounts list
  %(prog)s accounts add 123456789012 Production arn:aws:iam::123456789012:role/BuilderHub
  %(prog)s accounts verify 1
  %(prog)s resources ec2 --resource-region ap-northeast-2
  %(prog)s templates resolve modules.yaml base-tags prod-network
  %(prog)s templates resolve modules.yaml base-tags --mandatory-tag Owner
        """,
    )
    parser.add_argument("--config", help="Path to configuration file (default: auto-detect config.yaml)")
    parser.add_argument("--profile", help="AWS profile name for the broker identity")
    parser.add_argument("--region", help="AWS region to use (overrides configuration file)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"AWS Builder Hub v{__version__}")

    commands = parser.add_subparsers(dest="command", required=True)

    accounts = commands.add_parser("accounts", help="Manage registered AWS accounts")
    account_commands = accounts.add_subparsers(dest="action", required=True)
    account_commands.add_parser("list", help="List registered accounts")

    add = account_commands.add_parser("add", help="Register an account")
    add.add_argument("account_id")
    add.add_argument("name")
    add.add_argument("role_arn")
    add.add_argument("--external-id")
    add.add_argument("--description")

    for action in ("verify", "disable", "delete"):
        sub = account_commands.add_parser(action, help=f"{action.capitalize()} an account")
        sub.add_argument("id", type=int)

    resources = commands.add_parser("resources", help="List resources of verified accounts")
    resources.add_argument("kind", choices=["ec2", "rds", "s3", "vpc"])
    resources.add_argument("--account", type=int, help="Registry id of a single account")
    resources.add_argument("--resource-region", help="Only scan this region")

    templates = commands.add_parser("templates", help="Resolve provisioning templates")
    template_commands = templates.add_subparsers(dest="action", required=True)
    resolve = template_commands.add_parser("resolve", help="Merge modules in the given order")
    resolve.add_argument("modules_file")
    resolve.add_argument("module_ids", nargs="+")
    resolve.add_argument(
        "--mandatory-tag",
        dest="mandatory_tags",
        action="append",
        default=[],
        metavar="KEY",
        help="Tag key every instance of the template must carry (repeatable)",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_account_service(
    config: Configuration, aws_client: AWSClientManager
) -> AwsAccountService:
    """Wire the registry repository and the verifier."""
    engine = create_registry_engine(config.get_database_url())
    repository = AwsAccountRepository(create_session_factory(engine))
    verifier = AccountTrustVerifier(
        aws_client,
        session_name=config.get_session_name(),
        duration_seconds=config.get_session_duration(),
    )
    return AwsAccountService(repository, verifier)


def run_accounts(args: argparse.Namespace, service: AwsAccountService) -> int:
    if args.action == "list":
        for account in service.find_all():
            symbol = STATUS_SYMBOLS.get(account.status.value, "❓")
            verified = account.last_verified_at.isoformat() if account.last_verified_at else "-"
            print(
                f"{symbol} [{account.id}] {account.account_id} {account.account_name} "
                f"{account.status.value} (last verified: {verified})"
            )
        return 0

    if args.action == "add":
        account = service.create_account(
            args.account_id,
            args.name,
            args.role_arn,
            external_id=args.external_id,
            description=args.description,
        )
        print(f"✅ Registered account {account.account_id} with id {account.id}")
        return 0

    if args.action == "verify":
        result = service.verify_account(args.id)
        if result.success:
            print(f"✅ {result.message}: {result.resolved_arn}")
            return 0
        print(f"❌ {result.message} ({result.failure.value})")
        return 1

    if args.action == "disable":
        service.disable_account(args.id)
        print(f"⏭️  Disabled account {args.id}")
        return 0

    service.delete_account(args.id)
    print(f"🗑️  Deleted account {args.id}")
    return 0


def run_resources(args: argparse.Namespace, resources: ResourceService) -> int:
    if args.kind == "s3":
        items = resources.list_s3_buckets(args.account)
    else:
        listing = {
            "ec2": resources.list_ec2_instances,
            "rds": resources.list_rds_instances,
            "vpc": resources.list_vpcs,
        }[args.kind]
        items = listing(args.account, args.resource_region)

    print(yaml.safe_dump([asdict(item) for item in items], sort_keys=False), end="")
    return 0


def run_templates(args: argparse.Namespace) -> int:
    catalog = ModuleCatalog()
    catalog.load_yaml(args.modules_file)
    template = InstanceTemplate(
        name="cli",
        module_ids=args.module_ids,
        mandatory_tag_keys=args.mandatory_tags,
    )
    state = resolve_template(template, catalog)

    print(yaml.safe_dump(state.to_dict(), sort_keys=False), end="")

    missing = missing_mandatory_tags(state, template.mandatory_tag_keys)
    if missing:
        print(f"⚠️  Mandatory tags without value: {', '.join(missing)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        args = parse_arguments(argv)
        configure_logging(args.verbose)

        # Module resolution is local only and needs no configuration
        if args.command == "templates":
            return run_templates(args)

        if args.region:
            os.environ["AWS_REGION"] = args.region

        try:
            config = Configuration(args.config)
        except ConfigurationError as e:
            print(f"❌ Configuration error: {e}")
            return 1

        try:
            aws_client = AWSClientManager(
                profile_name=args.profile or config.get_profile_name(),
                region_name=config.get_region(),
                validate=args.command == "resources" or getattr(args, "action", None) == "verify",
            )
        except Exception as e:
            print(f"❌ AWS client initialization failed: {e}")
            return 1

        service = build_account_service(config, aws_client)

        if args.command == "accounts":
            return run_accounts(args, service)

        resources = ResourceService(service, aws_client, config.get_resource_regions())
        return run_resources(args, resources)

    except (AccountRegistryError, ModuleCatalogError, UnknownModuleError) as e:
        print(f"❌ {e}")
        return 1

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return 130

    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"\n❌ Unexpected error: {e}")
        print("   Please check your configuration and try again.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
