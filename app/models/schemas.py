from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional
from datetime import datetime
from enum import Enum


class TestRunStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"
    RUNNING = "running"


Browser = Literal["chromium", "firefox", "webkit"]


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


class TestStep(BaseModel):
    id: str
    case_id: str
    step_index: int = Field(..., description="1-based position of the step")
    action: str
    expected: Optional[str] = None

    class Config:
        from_attributes = True


class TestCaseUpsert(BaseModel):
    """Mutable fields of a local test case, overwritten as a whole on re-import"""
    id: str
    title: str
    area: Optional[str] = None
    priority: Optional[int] = None
    last_synced_at: datetime
    source_rev: Optional[str] = None


class TestCase(BaseModel):
    id: str
    title: str
    area: Optional[str] = None
    priority: Optional[int] = None
    last_synced_at: datetime
    source_rev: Optional[str] = None

    class Config:
        from_attributes = True


class TestCaseDetail(TestCase):
    steps: List[TestStep] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")

    class Config:
        populate_by_name = True


class PaginatedTestCases(ApiResponse):
    data: List[TestCase] = Field(default_factory=list)
    pagination: Pagination


class TestArtifact(BaseModel):
    id: str
    case_id: str
    kind: Literal["playwright", "prompt", "analysis"]
    path: str
    created_at: datetime

    class Config:
        from_attributes = True


class TestRun(BaseModel):
    id: str
    case_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    browser: str
    env: str

    class Config:
        from_attributes = True


class TokenUsage(BaseModel):
    id: str
    run_id: Optional[str] = None
    model: str
    prompt_tokens: int
    completion_tokens: int
    cost_usd: float
    created_at: datetime

    class Config:
        from_attributes = True


class GenerateTestRequest(BaseModel):
    regenerate: bool = False


class GenerateTestResult(BaseModel):
    artifact_id: str = Field(..., alias="artifactId")
    tokens_used: int = Field(0, alias="tokensUsed")
    cost_usd: float = Field(0.0, alias="costUsd")

    class Config:
        populate_by_name = True


class ExecuteTestRequest(BaseModel):
    browser: Browser = "chromium"
    env: str = Field("dev", min_length=1)


class ExecuteTestResult(BaseModel):
    run_id: str = Field(..., alias="runId")

    class Config:
        populate_by_name = True


class TestRunDetail(ApiResponse):
    data: TestRun
    artifacts: List[TestArtifact] = Field(default_factory=list)
    token_usage: List[TokenUsage] = Field(default_factory=list, alias="tokenUsage")

    class Config:
        populate_by_name = True
