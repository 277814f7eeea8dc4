import os

# In-memory store shared by every session; must be set before settings are loaded
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from main import app
from app.core.database import SessionLocal, engine
from app.core.dependencies import container, get_azure_devops_client, get_client_factory
from app.core.exceptions import AzureDevOpsError
from app.models import azure_devops as ado
from app.models.database import Base
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient


def steps_table(*rows) -> str:
    """Step HTML in the table layout Azure DevOps uses; one (action, expected) tuple per row"""
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table>{body}</table>"


class FakeAzureDevOpsClient(IAzureDevOpsClient):
    """In-memory Azure DevOps with failure injection"""

    def __init__(self):
        self.projects: List[ado.Project] = []
        self.test_plans: List[ado.TestPlan] = []
        self.suites: List[ado.TestSuite] = []
        self.cases: Dict[int, List[ado.TestCaseReference]] = {}
        self.work_items: Dict[int, ado.WorkItem] = {}
        self.suites_error: Optional[AzureDevOpsError] = None
        self.failing_suites: Dict[int, Exception] = {}
        self.failing_cases: Dict[int, Exception] = {}
        self.connection_result = ado.ConnectionTestResult(
            success=True, organization_name="contoso", project_name="Shop"
        )
        self.detail_requests: List[int] = []

    @property
    def organization_url(self) -> str:
        return "https://dev.azure.com/contoso"

    @property
    def organization_name(self) -> str:
        return "contoso"

    def add_suite(self, suite_id: int, name: str = "Suite", test_case_count: Optional[int] = None) -> None:
        self.suites.append(ado.TestSuite(id=suite_id, name=name, test_case_count=test_case_count or 0))
        self.cases.setdefault(suite_id, [])

    def add_case(
        self,
        suite_id: int,
        case_id: int,
        title: str = "Case",
        steps_html: str = "",
        area: Optional[str] = "Shop\\Checkout",
        priority: Optional[int] = 2,
        rev: int = 1,
    ) -> None:
        self.cases.setdefault(suite_id, []).append(ado.TestCaseReference(id=case_id, name=title))
        fields = {ado.TITLE_FIELD: title, ado.STEPS_FIELD: steps_html, ado.REVISION_FIELD: rev}
        if area is not None:
            fields[ado.AREA_PATH_FIELD] = area
        if priority is not None:
            fields[ado.PRIORITY_FIELD] = priority
        self.work_items[case_id] = ado.WorkItem(id=case_id, rev=rev, fields=fields)

    async def test_connection(self) -> ado.ConnectionTestResult:
        return self.connection_result

    async def get_projects(self) -> List[ado.Project]:
        return self.projects

    async def get_test_plan(self, project_id: str, test_plan_id: int) -> Optional[ado.TestPlan]:
        return next((plan for plan in self.test_plans if plan.id == test_plan_id), None)

    async def get_test_plans(
        self,
        project_id: str,
        search: Optional[str] = None,
        skip: int = 0,
        top: int = 50,
    ) -> ado.TestPlanPage:
        plans = sorted(self.test_plans, key=lambda plan: plan.id, reverse=True)
        return ado.TestPlanPage(test_plans=plans[skip:skip + top], total_count=len(plans), skip=skip, top=top)

    async def get_test_suites(self, project_id: str, test_plan_id: int) -> List[ado.TestSuite]:
        if self.suites_error:
            raise self.suites_error
        return self.suites

    async def get_test_cases(self, project_id: str, test_plan_id: int, test_suite_id: int) -> List[ado.TestCaseReference]:
        if test_suite_id in self.failing_suites:
            raise self.failing_suites[test_suite_id]
        return self.cases.get(test_suite_id, [])

    async def get_test_case_details(self, project_id: str, test_case_id: int) -> ado.WorkItem:
        self.detail_requests.append(test_case_id)
        if test_case_id in self.failing_cases:
            raise self.failing_cases[test_case_id]
        return self.work_items[test_case_id]


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def steps_html():
    return steps_table


@pytest.fixture
def fake_client():
    return FakeAzureDevOpsClient()


@pytest.fixture
def test_client(fake_client):
    """Synchronous test client wired to the fake Azure DevOps client"""
    app.dependency_overrides[get_azure_devops_client] = lambda: fake_client
    app.dependency_overrides[get_client_factory] = lambda: (lambda config: fake_client)
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    container._azure_devops_client = None
