from abc import ABC, abstractmethod
from typing import List, Optional
from app.models.azure_devops import (
    ConnectionTestResult,
    Project,
    TestCaseReference,
    TestPlan,
    TestPlanPage,
    TestSuite,
    WorkItem,
)


class IAzureDevOpsClient(ABC):
    """Interface for read access to Azure DevOps test management"""

    @property
    @abstractmethod
    def organization_url(self) -> str:
        pass

    @property
    @abstractmethod
    def organization_name(self) -> str:
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        """Check that organization and project are readable with the configured token"""
        pass

    @abstractmethod
    async def get_projects(self) -> List[Project]:
        pass

    @abstractmethod
    async def get_test_plan(self, project_id: str, test_plan_id: int) -> Optional[TestPlan]:
        """Get one test plan, or None when it does not exist"""
        pass

    @abstractmethod
    async def get_test_plans(
        self,
        project_id: str,
        search: Optional[str] = None,
        skip: int = 0,
        top: int = 50,
    ) -> TestPlanPage:
        """Get test plans newest first, paginated locally"""
        pass

    @abstractmethod
    async def get_test_suites(self, project_id: str, test_plan_id: int) -> List[TestSuite]:
        pass

    @abstractmethod
    async def get_test_cases(self, project_id: str, test_plan_id: int, test_suite_id: int) -> List[TestCaseReference]:
        pass

    @abstractmethod
    async def get_test_case_details(self, project_id: str, test_case_id: int) -> WorkItem:
        """Get a test case work item with all fields, including the step table"""
        pass
