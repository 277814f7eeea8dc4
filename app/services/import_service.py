from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence
import structlog

from app.models.azure_devops import (
    ImportFailure,
    ImportProgress,
    ImportResult,
    TestCaseReference,
    TestSuite,
)
from app.models.schemas import TestCaseUpsert
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.services.step_parser import parse_steps

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportService:
    """Imports Azure DevOps test cases and their steps into the local store.

    Suites and cases are walked strictly one after another. A failing case is
    recorded and skipped; a suite whose case list cannot be fetched is logged
    and skipped without touching the counters.
    """

    def __init__(
        self,
        azure_devops_client: IAzureDevOpsClient,
        test_case_repository: ITestCaseRepository,
        log: Optional[Any] = None,
    ):
        self.azure_devops_client = azure_devops_client
        self.test_case_repository = test_case_repository
        self.logger = log or logger

    async def import_test_cases(
        self,
        project_id: str,
        test_plan_id: int,
        test_suite_ids: Optional[Sequence[int]] = None,
        update_existing: bool = True,
    ) -> ImportResult:
        """Import every case of the selected suites of a test plan.

        Raises a classified AzureDevOpsError only when the plan's suites cannot
        be listed; once the walk has started a structured result is always
        returned.
        """
        self.logger.info(
            "Starting Azure DevOps import",
            project_id=project_id,
            test_plan_id=test_plan_id,
            test_suite_ids=list(test_suite_ids) if test_suite_ids is not None else None,
            update_existing=update_existing,
        )

        all_suites = await self.azure_devops_client.get_test_suites(project_id, test_plan_id)
        suites = self._select_suites(all_suites, test_suite_ids)

        progress = ImportProgress(
            status="running",
            started_at=_utcnow(),
            # Remote-reported counts; may differ from what is actually enumerated
            total_test_cases=sum(suite.test_case_count for suite in suites),
        )

        for suite in suites:
            try:
                test_cases = await self.azure_devops_client.get_test_cases(project_id, test_plan_id, suite.id)
            except Exception as e:
                self.logger.error("Failed to process test suite", suite_id=suite.id, error=str(e))
                continue

            for test_case in test_cases:
                await self._import_test_case(project_id, test_case, update_existing, progress)

        progress.status = "completed"
        progress.completed_at = _utcnow()

        result = ImportResult(
            success=progress.succeeded,
            progress=progress,
            message=(
                f"Import completed: {progress.imported_test_cases} imported, "
                f"{progress.updated_test_cases} updated, "
                f"{progress.skipped_test_cases} skipped, "
                f"{progress.failed_test_cases} failed"
            ),
        )

        self.logger.info(
            "Azure DevOps import completed",
            success=result.success,
            total=progress.total_test_cases,
            processed=progress.processed_test_cases,
            imported=progress.imported_test_cases,
            updated=progress.updated_test_cases,
            skipped=progress.skipped_test_cases,
            failed=progress.failed_test_cases,
        )
        return result

    @staticmethod
    def _select_suites(suites: List[TestSuite], test_suite_ids: Optional[Sequence[int]]) -> List[TestSuite]:
        if test_suite_ids is None:
            return suites
        wanted = set(test_suite_ids)
        return [suite for suite in suites if suite.id in wanted]

    async def _import_test_case(
        self,
        project_id: str,
        test_case: TestCaseReference,
        update_existing: bool,
        progress: ImportProgress,
    ) -> None:
        progress.processed_test_cases += 1

        try:
            work_item = await self.azure_devops_client.get_test_case_details(project_id, test_case.id)
            steps = parse_steps(work_item.steps_html, log=self.logger)

            case_id = str(test_case.id)
            existing = await self.test_case_repository.find_case_by_id(case_id)
            if existing and not update_existing:
                progress.skipped_test_cases += 1
                return

            # The revision is stored but not compared; an update always overwrites
            data = TestCaseUpsert(
                id=case_id,
                title=work_item.title,
                area=work_item.area_path,
                priority=work_item.priority,
                last_synced_at=_utcnow(),
                source_rev=work_item.revision,
            )
            await self.test_case_repository.save_case_with_steps(data, steps)

            if existing:
                progress.updated_test_cases += 1
            else:
                progress.imported_test_cases += 1
        except Exception as e:
            progress.failed_test_cases += 1
            progress.errors.append(ImportFailure(test_case_id=test_case.id, error=str(e)))
            self.logger.error("Failed to import test case", test_case_id=test_case.id, error=str(e))
