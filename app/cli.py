"""
Command line import from Azure DevOps into the local test store.

Usage examples:
  ado-import --project MyProject --plan 12
  ado-import --project MyProject --plan 12 --suite 34 --suite 35 --skip-existing

Notes:
 - Uses app.config.settings for DATABASE_URL and the ADO_* connection values.
 - Prints the import result as JSON; exits 1 when the import did not succeed.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional, Sequence

import structlog

from app.config.settings import settings
from app.core.database import SessionLocal, create_tables
from app.core.exceptions import AzureDevOpsError
from app.core.logging import configure_logging
from app.models.azure_devops import ImportResult
from app.repositories.implementations.azure_devops_client import AzureDevOpsClient
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient
from app.services.import_service import ImportService

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ado-import",
        description="Import Azure DevOps test cases into the local test store",
    )
    parser.add_argument("--project", required=True, help="Azure DevOps project name or id")
    parser.add_argument("--plan", type=int, required=True, help="Test plan id")
    parser.add_argument(
        "--suite",
        type=int,
        action="append",
        dest="suites",
        help="Test suite id to import (repeatable); all suites when omitted",
    )
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Leave already imported cases untouched instead of updating them",
    )
    return parser


async def run_import(
    client: IAzureDevOpsClient,
    session,
    project_id: str,
    test_plan_id: int,
    test_suite_ids: Optional[Sequence[int]] = None,
    update_existing: bool = True,
) -> ImportResult:
    """Run one import against an open database session"""
    service = ImportService(
        azure_devops_client=client,
        test_case_repository=SQLTestCaseRepository(session),
    )
    return await service.import_test_cases(
        project_id=project_id,
        test_plan_id=test_plan_id,
        test_suite_ids=test_suite_ids,
        update_existing=update_existing,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)

    config = settings.azure_devops_config()
    if config is None:
        print("Azure DevOps is not configured: set ADO_ORG_URL, ADO_PROJECT and ADO_PAT", file=sys.stderr)
        return 2

    create_tables()
    client = AzureDevOpsClient(config, timeout=settings.ado_request_timeout_seconds)

    session = SessionLocal()
    try:
        result = asyncio.run(
            run_import(
                client,
                session,
                project_id=args.project,
                test_plan_id=args.plan,
                test_suite_ids=args.suites,
                update_existing=not args.skip_existing,
            )
        )
    except AzureDevOpsError as e:
        logger.error("Import could not start", error_code=e.code, error=e.message)
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1
    finally:
        session.close()

    print(result.model_dump_json(by_alias=True, indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
