import asyncio
import httpx
from base64 import b64encode
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote
import structlog
from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import (
    AzureDevOpsError,
    NetworkError,
    NotFoundError,
    ValidationError,
    classify_http_error,
)
from app.models.azure_devops import (
    AzureDevOpsConfig,
    ConnectionPermissions,
    ConnectionTestResult,
    Project,
    TestCaseReference,
    TestPlan,
    TestPlanPage,
    TestSuite,
    WorkItem,
)
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

API_VERSION = "6.0"
TEST_PLANS_API_VERSION = "7.1"
CONTINUATION_HEADER = "x-ms-continuationtoken"


class AzureDevOpsClient(IAzureDevOpsClient):
    """Azure DevOps REST implementation, authenticated with a personal access token"""

    def __init__(
        self,
        config: AzureDevOpsConfig,
        log: Optional[Any] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.config = config
        self._organization_url = config.organization_url.rstrip("/")
        self.base_url = f"{self._organization_url}/_apis"
        token = b64encode(f":{config.secret_token}".encode()).decode()
        self._headers = {
            "Authorization": f"Basic {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.timeout = timeout
        self._transport = transport
        self.logger = log or logger

    @property
    def organization_url(self) -> str:
        return self._organization_url

    @property
    def organization_name(self) -> str:
        return self._organization_url.split("/")[-1] or "Unknown"

    async def test_connection(self) -> ConnectionTestResult:
        """Fetch organization and project info concurrently; any failure means no access"""
        try:
            organization_name, project = await asyncio.gather(
                self._get_organization_info(),
                self._get_project_info(),
            )
            return ConnectionTestResult(
                success=True,
                organization_name=organization_name,
                project_name=project.name,
                permissions=ConnectionPermissions(
                    can_read_projects=True,
                    can_read_test_plans=True,
                    can_read_test_cases=True,
                ),
            )
        except Exception as e:
            message = e.message if isinstance(e, AzureDevOpsError) else str(e)
            self.logger.error(
                "Azure DevOps connection test failed",
                organization_url=self._organization_url,
                error=message,
            )
            return ConnectionTestResult(success=False, error=message)

    async def get_projects(self) -> List[Project]:
        try:
            items = await self._get_all("projects")
            return self._parse_list(Project, items)
        except AzureDevOpsError as e:
            self.logger.error("Failed to fetch Azure DevOps projects", error=e.message, code=e.code)
            raise

    async def get_test_plan(self, project_id: str, test_plan_id: int) -> Optional[TestPlan]:
        try:
            data = await self._get_json(f"testplan/plans/{test_plan_id}", project_id=project_id)
            return self._parse(TestPlan, data)
        except NotFoundError:
            self.logger.info("Azure DevOps test plan not found", project_id=project_id, test_plan_id=test_plan_id)
            return None
        except AzureDevOpsError as e:
            self.logger.error(
                "Failed to fetch Azure DevOps test plan",
                project_id=project_id,
                test_plan_id=test_plan_id,
                error=e.message,
                code=e.code,
            )
            raise

    async def get_test_plans(
        self,
        project_id: str,
        search: Optional[str] = None,
        skip: int = 0,
        top: int = 50,
    ) -> TestPlanPage:
        """Fetch every plan, then filter, sort newest first and slice.

        The test plan API has no server side $skip/$top, so pagination happens here.
        totalCount is the size of the filtered set before slicing.
        """
        try:
            items = await self._get_all(
                "testplan/plans",
                params={"includePlanDetails": "true"},
                project_id=project_id,
                api_version=TEST_PLANS_API_VERSION,
            )
        except AzureDevOpsError as e:
            self.logger.error(
                "Failed to fetch Azure DevOps test plans",
                project_id=project_id,
                search=search,
                skip=skip,
                top=top,
                error=e.message,
                code=e.code,
            )
            raise

        test_plans = self._parse_list(TestPlan, items)
        if search:
            needle = search.lower()
            test_plans = [plan for plan in test_plans if needle in plan.name.lower()]

        test_plans.sort(key=lambda plan: plan.id, reverse=True)
        skip = max(skip, 0)
        top = max(top, 0)

        return TestPlanPage(
            test_plans=test_plans[skip:skip + top],
            total_count=len(test_plans),
            skip=skip,
            top=top,
        )

    async def get_test_suites(self, project_id: str, test_plan_id: int) -> List[TestSuite]:
        try:
            items = await self._get_all(f"testplan/Plans/{test_plan_id}/suites", project_id=project_id)
            return self._parse_list(TestSuite, items)
        except AzureDevOpsError as e:
            self.logger.error(
                "Failed to fetch Azure DevOps test suites",
                project_id=project_id,
                test_plan_id=test_plan_id,
                error=e.message,
                code=e.code,
            )
            raise

    async def get_test_cases(self, project_id: str, test_plan_id: int, test_suite_id: int) -> List[TestCaseReference]:
        try:
            items = await self._get_all(
                f"testplan/Plans/{test_plan_id}/Suites/{test_suite_id}/TestCase",
                project_id=project_id,
            )
            return self._parse_list(TestCaseReference, items)
        except AzureDevOpsError as e:
            self.logger.error(
                "Failed to fetch Azure DevOps test cases",
                project_id=project_id,
                test_plan_id=test_plan_id,
                test_suite_id=test_suite_id,
                error=e.message,
                code=e.code,
            )
            raise

    async def get_test_case_details(self, project_id: str, test_case_id: int) -> WorkItem:
        try:
            data = await self._get_json(
                f"wit/workitems/{test_case_id}",
                params={"$expand": "all"},
                project_id=project_id,
            )
            return self._parse(WorkItem, data)
        except AzureDevOpsError as e:
            self.logger.error(
                "Failed to fetch Azure DevOps test case details",
                project_id=project_id,
                test_case_id=test_case_id,
                error=e.message,
                code=e.code,
            )
            raise

    async def _get_organization_info(self) -> str:
        await self._get_json("connectionData")
        # The organization name is the last segment of the organization URL
        return self.organization_name

    async def _get_project_info(self) -> Project:
        data = await self._get_json(f"projects/{quote(self.config.project_slug, safe='')}")
        return self._parse(Project, data)

    def _build_url(self, path: str, project_id: Optional[str] = None) -> str:
        if project_id:
            return f"{self._organization_url}/{quote(project_id, safe='')}/_apis/{path}"
        return f"{self.base_url}/{path}"

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        project_id: Optional[str] = None,
        api_version: str = API_VERSION,
    ) -> httpx.Response:
        url = self._build_url(path, project_id)
        query = {"api-version": api_version}
        query.update(params or {})

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(url, params=query, headers=self._headers)
        except httpx.TransportError as e:
            self.logger.error("Network error connecting to Azure DevOps", url=url, error=str(e))
            raise NetworkError("Network error connecting to Azure DevOps", status_code=0, details=str(e))

        if not response.is_success:
            self.logger.warning(
                "Azure DevOps request failed",
                url=url,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise classify_http_error(response.status_code, response.text)

        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise ValidationError(
                "Azure DevOps returned a response that is not valid JSON",
                status_code=response.status_code,
            )

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        project_id: Optional[str] = None,
        api_version: str = API_VERSION,
    ) -> Any:
        response = await self._get(path, params=params, project_id=project_id, api_version=api_version)
        return self._decode(response)

    async def _get_all(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        project_id: Optional[str] = None,
        api_version: str = API_VERSION,
    ) -> List[Dict[str, Any]]:
        """Collect `value` across pages of a {count, value} collection"""
        items: List[Dict[str, Any]] = []
        continuation_token: Optional[str] = None

        while True:
            page_params = dict(params or {})
            if continuation_token:
                page_params["continuationToken"] = continuation_token

            response = await self._get(path, params=page_params, project_id=project_id, api_version=api_version)
            body = self._decode(response)
            if not isinstance(body, dict) or not isinstance(body.get("value", []), list):
                raise ValidationError(f"Unexpected collection response for {path}")
            items.extend(body.get("value", []))

            next_token = response.headers.get(CONTINUATION_HEADER)
            if not next_token or next_token == continuation_token:
                return items
            continuation_token = next_token

    @staticmethod
    def _parse(model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Unexpected {model.__name__} payload from Azure DevOps", details=str(e))

    @classmethod
    def _parse_list(cls, model: Type[ModelT], items: List[Any]) -> List[ModelT]:
        return [cls._parse(model, item) for item in items]
