from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


STEPS_FIELD = "Microsoft.VSTS.TCM.Steps"
TITLE_FIELD = "System.Title"
AREA_PATH_FIELD = "System.AreaPath"
PRIORITY_FIELD = "Microsoft.VSTS.Common.Priority"
REVISION_FIELD = "System.Rev"


class AzureDevOpsConfig(BaseModel):
    """Connection settings for one organization/project"""
    organization_url: str
    project_slug: str
    secret_token: str

    def __repr__(self) -> str:
        return f"<AzureDevOpsConfig(organization_url='{self.organization_url}', project_slug='{self.project_slug}')>"


class IdentityRef(BaseModel):
    id: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")

    class Config:
        populate_by_name = True


class ShallowReference(BaseModel):
    id: Optional[Any] = None
    name: Optional[str] = None


class Project(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    state: Optional[str] = None
    visibility: Optional[str] = None
    last_update_time: Optional[datetime] = Field(None, alias="lastUpdateTime")

    class Config:
        populate_by_name = True


class TestPlan(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    owner: Optional[IdentityRef] = None
    state: Optional[Literal["Active", "Inactive"]] = None
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    area_path: Optional[str] = Field(None, alias="areaPath")
    iteration: Optional[str] = None
    url: Optional[str] = None

    class Config:
        populate_by_name = True


class TestPlanPage(BaseModel):
    test_plans: List[TestPlan] = Field(default_factory=list, alias="testPlans")
    total_count: int = Field(..., alias="totalCount")
    skip: int
    top: int

    class Config:
        populate_by_name = True


class TestSuite(BaseModel):
    id: int
    name: str
    url: Optional[str] = None
    plan: Optional[ShallowReference] = None
    parent_suite: Optional[ShallowReference] = Field(None, alias="parentSuite")
    # staticTestSuite, dynamicTestSuite or requirementTestSuite
    suite_type: Optional[str] = Field(None, alias="suiteType")
    has_children: bool = Field(False, alias="hasChildren")
    test_case_count: int = Field(0, alias="testCaseCount")

    class Config:
        populate_by_name = True


class TestCaseReference(BaseModel):
    """A test case as listed under a suite"""
    id: int
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_work_item(cls, data: Any) -> Any:
        # The test plan API nests the work item: {"workItem": {"id": 1, "name": "..."}}
        if isinstance(data, dict) and "id" not in data and isinstance(data.get("workItem"), dict):
            work_item = data["workItem"]
            return {"id": work_item.get("id"), "name": work_item.get("name")}
        return data


class WorkItem(BaseModel):
    """Full test case work item, including the raw step table"""
    id: int
    rev: Optional[int] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None

    @property
    def title(self) -> str:
        return self.fields.get(TITLE_FIELD) or ""

    @property
    def area_path(self) -> Optional[str]:
        return self.fields.get(AREA_PATH_FIELD) or None

    @property
    def priority(self) -> Optional[int]:
        value = self.fields.get(PRIORITY_FIELD)
        return int(value) if value is not None else None

    @property
    def revision(self) -> Optional[str]:
        value = self.fields.get(REVISION_FIELD, self.rev)
        return str(value) if value is not None else None

    @property
    def steps_html(self) -> str:
        return self.fields.get(STEPS_FIELD) or ""


class ParsedStep(BaseModel):
    position: int = Field(..., description="1-based position among emitted steps")
    action: str
    expected_result: str = Field("", alias="expectedResult")

    class Config:
        populate_by_name = True


class Organization(BaseModel):
    name: str
    url: str


class ConnectionPermissions(BaseModel):
    can_read_projects: bool = Field(False, alias="canReadProjects")
    can_read_test_plans: bool = Field(False, alias="canReadTestPlans")
    can_read_test_cases: bool = Field(False, alias="canReadTestCases")

    class Config:
        populate_by_name = True


class ConnectionTestResult(BaseModel):
    success: bool
    organization_name: Optional[str] = Field(None, alias="organizationName")
    project_name: Optional[str] = Field(None, alias="projectName")
    error: Optional[str] = None
    permissions: Optional[ConnectionPermissions] = None

    class Config:
        populate_by_name = True


class ConnectionTestRequest(BaseModel):
    org_url: str = Field(..., alias="orgUrl", pattern=r"^https?://\S+$", description="Organization URL")
    project: str = Field(..., min_length=1, description="Project name")
    pat: str = Field(..., min_length=1, description="Personal access token")

    class Config:
        populate_by_name = True

    def to_config(self) -> AzureDevOpsConfig:
        return AzureDevOpsConfig(
            organization_url=self.org_url,
            project_slug=self.project,
            secret_token=self.pat,
        )


class ImportRequest(BaseModel):
    project_id: str = Field(..., alias="projectId", min_length=1)
    test_plan_id: int = Field(..., alias="testPlanId", ge=1)
    test_suite_ids: Optional[List[int]] = Field(
        None, alias="testSuiteIds", description="Suites to import; all suites of the plan when omitted"
    )
    update_existing: bool = Field(True, alias="updateExisting")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _positive_suite_ids(self) -> "ImportRequest":
        if self.test_suite_ids and any(suite_id < 1 for suite_id in self.test_suite_ids):
            raise ValueError("Each test suite id must be a positive integer")
        return self


class ImportFailure(BaseModel):
    test_case_id: int = Field(..., alias="testCaseId")
    error: str

    class Config:
        populate_by_name = True


class ImportProgress(BaseModel):
    status: Literal["pending", "running", "completed", "failed"] = "pending"
    total_test_cases: int = Field(0, alias="totalTestCases")
    processed_test_cases: int = Field(0, alias="processedTestCases")
    imported_test_cases: int = Field(0, alias="importedTestCases")
    updated_test_cases: int = Field(0, alias="updatedTestCases")
    skipped_test_cases: int = Field(0, alias="skippedTestCases")
    failed_test_cases: int = Field(0, alias="failedTestCases")
    started_at: datetime = Field(..., alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    errors: List[ImportFailure] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @property
    def succeeded(self) -> bool:
        """Complete or partial success; only all-failed runs with errors are unsuccessful"""
        return not self.errors or (self.imported_test_cases + self.updated_test_cases) > 0


class ImportResult(BaseModel):
    success: bool
    progress: ImportProgress
    message: Optional[str] = None
