from pathlib import PurePosixPath
from typing import Optional
import structlog

from app.models.schemas import (
    ExecuteTestResult,
    GenerateTestResult,
    TestRunDetail,
    TestRunStatus,
)
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.repositories.interfaces.test_run_repository import ITestRunRepository

logger = structlog.get_logger()


class TestRunService:
    """Placeholders for test generation and execution.

    Nothing is generated or executed yet; the service records the artifact,
    run and token usage rows the real implementation will produce.
    """

    def __init__(
        self,
        test_case_repository: ITestCaseRepository,
        test_run_repository: ITestRunRepository,
        generated_tests_dir: str,
        model: str,
    ):
        self.test_case_repository = test_case_repository
        self.test_run_repository = test_run_repository
        self.generated_tests_dir = generated_tests_dir
        self.model = model

    async def generate_test(self, case_id: str, regenerate: bool = False) -> Optional[GenerateTestResult]:
        """Record a placeholder Playwright artifact; None when the case is unknown"""
        if not await self._case_exists(case_id):
            return None

        path = str(PurePosixPath(self.generated_tests_dir) / f"{case_id}.spec.ts")
        artifact = await self.test_run_repository.create_artifact(case_id, "playwright", path)
        # Not tied to a run: generation happens before any execution
        await self.test_run_repository.record_token_usage(
            model=self.model,
            prompt_tokens=0,
            completion_tokens=0,
            cost_usd=0.0,
        )

        logger.info("Recorded placeholder test artifact", case_id=case_id, artifact_id=artifact.id, regenerate=regenerate)
        return GenerateTestResult(artifact_id=artifact.id, tokens_used=0, cost_usd=0.0)

    async def execute_test(self, case_id: str, browser: str = "chromium", env: str = "dev") -> Optional[ExecuteTestResult]:
        if not await self._case_exists(case_id):
            return None

        run = await self.test_run_repository.create_run(
            case_id,
            status=TestRunStatus.RUNNING.value,
            browser=browser,
            env=env,
        )
        logger.info("Created test run", case_id=case_id, run_id=run.id, browser=browser, env=env)
        return ExecuteTestResult(run_id=run.id)

    async def get_run(self, run_id: str) -> Optional[TestRunDetail]:
        run = await self.test_run_repository.get_run(run_id)
        if not run:
            return None

        return TestRunDetail(
            success=True,
            data=run,
            artifacts=await self.test_run_repository.list_artifacts_for_case(run.case_id),
            token_usage=await self.test_run_repository.list_token_usage_for_run(run_id),
        )

    async def _case_exists(self, case_id: str) -> bool:
        return await self.test_case_repository.find_case_by_id(case_id) is not None
