from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from app.core.dependencies import get_test_run_service
from app.models.schemas import (
    ApiResponse,
    ExecuteTestRequest,
    GenerateTestRequest,
    TestRunDetail,
)
from app.services.test_run_service import TestRunService

logger = structlog.get_logger()

router = APIRouter(prefix="/tests", tags=["tests"])


@router.post("/generate/{case_id}", response_model=ApiResponse)
async def generate_test(
    case_id: str,
    request: GenerateTestRequest = GenerateTestRequest(),
    service: TestRunService = Depends(get_test_run_service)
):
    """Generate a Playwright test for an imported case (placeholder)"""
    result = await service.generate_test(case_id, regenerate=request.regenerate)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test case not found"
        )
    return ApiResponse(
        success=True,
        data=result.model_dump(by_alias=True),
        message="Test generation is not implemented yet; a placeholder artifact was recorded",
    )


@router.post("/runs/{case_id}/execute", response_model=ApiResponse)
async def execute_test(
    case_id: str,
    request: ExecuteTestRequest = ExecuteTestRequest(),
    service: TestRunService = Depends(get_test_run_service)
):
    """Start a test run for an imported case (placeholder)"""
    result = await service.execute_test(case_id, browser=request.browser, env=request.env)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test case not found"
        )
    return ApiResponse(
        success=True,
        data=result.model_dump(by_alias=True),
        message="Test execution is not implemented yet; the run stays in running state",
    )


@router.get("/runs/{run_id}", response_model=TestRunDetail)
async def get_test_run(
    run_id: str,
    service: TestRunService = Depends(get_test_run_service)
):
    """Get a test run with the case's artifacts and the run's token usage"""
    detail = await service.get_run(run_id)
    if not detail:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test run not found"
        )
    return detail
