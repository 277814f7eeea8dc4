from typing import Any, Callable, List, Optional
import structlog

from app.models.azure_devops import (
    AzureDevOpsConfig,
    ConnectionTestResult,
    Organization,
    Project,
    TestPlan,
    TestPlanPage,
    TestSuite,
)
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient

logger = structlog.get_logger()


class DiscoveryService:
    """Read-only Azure DevOps lookups used to populate the UI before an import"""

    def __init__(self, azure_devops_client: IAzureDevOpsClient, log: Optional[Any] = None):
        self.azure_devops_client = azure_devops_client
        self.logger = log or logger

    def list_organizations(self) -> List[Organization]:
        """The configured organization; derived from its URL, not fetched"""
        return [
            Organization(
                name=self.azure_devops_client.organization_name,
                url=self.azure_devops_client.organization_url,
            )
        ]

    async def list_projects(self) -> List[Project]:
        projects = await self.azure_devops_client.get_projects()
        self.logger.info("Retrieved Azure DevOps projects", count=len(projects))
        return projects

    async def list_test_plans(
        self,
        project_id: str,
        search: Optional[str] = None,
        skip: int = 0,
        top: int = 50,
    ) -> TestPlanPage:
        page = await self.azure_devops_client.get_test_plans(project_id, search=search, skip=skip, top=top)
        self.logger.info(
            "Retrieved Azure DevOps test plans",
            project_id=project_id,
            count=len(page.test_plans),
            total=page.total_count,
        )
        return page

    async def get_test_plan(self, project_id: str, test_plan_id: int) -> Optional[TestPlan]:
        return await self.azure_devops_client.get_test_plan(project_id, test_plan_id)

    async def list_test_suites(self, project_id: str, test_plan_id: int) -> List[TestSuite]:
        suites = await self.azure_devops_client.get_test_suites(project_id, test_plan_id)
        self.logger.info(
            "Retrieved Azure DevOps test suites",
            project_id=project_id,
            test_plan_id=test_plan_id,
            count=len(suites),
        )
        return suites


async def run_connection_test(
    config: AzureDevOpsConfig,
    client_factory: Callable[[AzureDevOpsConfig], IAzureDevOpsClient],
) -> ConnectionTestResult:
    """Check credentials supplied by the caller with a throwaway client"""
    client = client_factory(config)
    result = await client.test_connection()
    logger.info(
        "Azure DevOps connection test completed",
        success=result.success,
        organization_name=result.organization_name,
        project_name=result.project_name,
    )
    return result
