#!/usr/bin/env python3
"""Create/manage the DynamoDB table used by the thread store.

USAGE:
    python scripts/setup_dynamodb_table.py [COMMAND]

COMMANDS:
    create      Create the table and owner index, wait until active (default)
    status      Show table status, item count and indexes
    delete      Delete the table (asks for confirmation)

The table name, owner index and region come from the same settings the
backend reads (DYNAMODB_TABLE_NAME, DYNAMODB_OWNER_INDEX, AWS_REGION).

PREREQUISITES:
    - The project installed (pip install -e .)
    - AWS credentials allowed to manage DynamoDB tables
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

import boto3
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from stack_chat_backend.storage import table_definition
from stack_toolkit.config import load_settings


class Colors:
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    BLUE = "\033[0;34m"
    NC = "\033[0m"  # No Color


def log_info(msg: str) -> None:
    print(f"{Colors.BLUE}[INFO]{Colors.NC} {msg}")


def log_success(msg: str) -> None:
    print(f"{Colors.GREEN}[OK]{Colors.NC} {msg}")


def log_warn(msg: str) -> None:
    print(f"{Colors.YELLOW}[WARN]{Colors.NC} {msg}")


def log_error(msg: str) -> None:
    print(f"{Colors.RED}[ERROR]{Colors.NC} {msg}", file=sys.stderr)


def get_dynamodb_client(region: str) -> Any:
    try:
        return boto3.Session().client("dynamodb", region_name=region)
    except (NoCredentialsError, ProfileNotFound) as e:
        log_error(f"AWS credentials not configured: {e}")
        log_error("Run 'aws configure' or set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY")
        sys.exit(1)


def describe_table(client: Any, table_name: str) -> dict[str, Any] | None:
    try:
        return client.describe_table(TableName=table_name)["Table"]
    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceNotFoundException":
            return None
        raise


def cmd_status(client: Any, table_name: str) -> None:
    table = describe_table(client, table_name)
    if table is None:
        log_warn(f"Table '{table_name}' does not exist")
        return
    log_info(f"Table:  {table_name} ({table['TableStatus']})")
    log_info(f"Items:  {table.get('ItemCount', 0)}")
    for index in table.get("GlobalSecondaryIndexes", []):
        keys = ", ".join(k["AttributeName"] for k in index["KeySchema"])
        log_info(f"Index:  {index['IndexName']} ({keys}) {index.get('IndexStatus', '')}")


def cmd_create(client: Any, table_name: str, owner_index: str) -> None:
    if describe_table(client, table_name) is not None:
        log_warn(f"Table '{table_name}' already exists")
        cmd_status(client, table_name)
        return
    log_info(f"Creating table '{table_name}' with index '{owner_index}'...")
    client.create_table(**table_definition(table_name, owner_index))
    client.get_waiter("table_exists").wait(TableName=table_name)
    log_success(f"Table '{table_name}' is active")


def cmd_delete(client: Any, table_name: str) -> None:
    if describe_table(client, table_name) is None:
        log_warn(f"Table '{table_name}' does not exist")
        return
    answer = input(f"Delete table '{table_name}' and every thread in it? [y/N] ")
    if answer.strip().lower() != "y":
        log_info("Aborted")
        return
    client.delete_table(TableName=table_name)
    client.get_waiter("table_not_exists").wait(TableName=table_name)
    log_success(f"Table '{table_name}' deleted")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Create/manage the DynamoDB thread table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s create           # Create table and owner index
  %(prog)s status           # Check current status
  %(prog)s delete           # Delete table (interactive)
""",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="create",
        choices=["create", "status", "delete"],
        help="Command to execute (default: create)",
    )
    parser.add_argument("--table", help="Override DYNAMODB_TABLE_NAME")
    args = parser.parse_args()

    settings = load_settings()
    table_name = args.table or settings.dynamodb_table_name
    client = get_dynamodb_client(settings.aws_region)

    try:
        if args.command == "create":
            cmd_create(client, table_name, settings.dynamodb_owner_index)
        elif args.command == "status":
            cmd_status(client, table_name)
        elif args.command == "delete":
            cmd_delete(client, table_name)
    except ClientError as e:
        log_error(f"AWS API error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        log_info("Aborted")
        sys.exit(0)


if __name__ == "__main__":
    main()
