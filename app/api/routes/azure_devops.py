from typing import Callable, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from app.core.dependencies import get_client_factory, get_discovery_service, get_import_service
from app.core.exceptions import AzureDevOpsError
from app.models.azure_devops import AzureDevOpsConfig, ConnectionTestRequest, ImportRequest
from app.models.schemas import ApiResponse
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient
from app.services.discovery_service import DiscoveryService, run_connection_test
from app.services.import_service import ImportService

logger = structlog.get_logger()

router = APIRouter(prefix="/azure-devops", tags=["azure-devops"])


def _dump(value) -> object:
    if isinstance(value, list):
        return [item.model_dump(mode="json", by_alias=True) for item in value]
    return value.model_dump(mode="json", by_alias=True)


@router.post("/test-connection", response_model=ApiResponse)
async def test_connection(
    request: ConnectionTestRequest,
    client_factory: Callable[[AzureDevOpsConfig], IAzureDevOpsClient] = Depends(get_client_factory),
):
    """Check caller-supplied credentials; a failed check is still a successful call"""
    logger.info("Testing Azure DevOps connection", org_url=request.org_url, project=request.project)
    try:
        result = await run_connection_test(request.to_config(), client_factory)
    except Exception as e:
        logger.error("Failed to test Azure DevOps connection", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to test connection"
        )
    return ApiResponse(success=True, data=_dump(result))


@router.get("/organizations", response_model=ApiResponse)
async def get_organizations(service: DiscoveryService = Depends(get_discovery_service)):
    """The configured organization"""
    return ApiResponse(success=True, data=_dump(service.list_organizations()))


@router.get("/projects", response_model=ApiResponse)
async def get_projects(service: DiscoveryService = Depends(get_discovery_service)):
    """List projects in the configured organization"""
    try:
        projects = await service.list_projects()
    except AzureDevOpsError:
        raise
    except Exception as e:
        logger.error("Failed to fetch projects", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch projects"
        )
    return ApiResponse(success=True, data=_dump(projects))


@router.get("/test-plans", response_model=ApiResponse)
async def get_test_plans(
    project_id: str = Query(..., alias="projectId", min_length=1),
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    top: int = Query(50, ge=1, le=1000),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """One page of test plans, newest id first, optionally filtered by name"""
    try:
        page = await service.list_test_plans(project_id, search=search, skip=skip, top=top)
    except AzureDevOpsError:
        raise
    except Exception as e:
        logger.error("Failed to fetch test plans", project_id=project_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch test plans"
        )
    return ApiResponse(success=True, data=_dump(page))


@router.get("/test-plans/{test_plan_id}", response_model=ApiResponse)
async def get_test_plan(
    test_plan_id: int,
    project_id: str = Query(..., alias="projectId", min_length=1),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Get a test plan by ID"""
    test_plan = await service.get_test_plan(project_id, test_plan_id)
    if not test_plan:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Test plan not found"
        )
    return ApiResponse(success=True, data=_dump(test_plan))


@router.get("/test-suites", response_model=ApiResponse)
async def get_test_suites(
    project_id: str = Query(..., alias="projectId", min_length=1),
    test_plan_id: int = Query(..., alias="testPlanId", ge=1),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """List the suites of a test plan"""
    try:
        suites = await service.list_test_suites(project_id, test_plan_id)
    except AzureDevOpsError:
        raise
    except Exception as e:
        logger.error("Failed to fetch test suites", project_id=project_id, test_plan_id=test_plan_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch test suites"
        )
    return ApiResponse(success=True, data=_dump(suites))


@router.post("/import", response_model=ApiResponse)
async def import_test_cases(
    request: ImportRequest,
    service: ImportService = Depends(get_import_service),
):
    """Import the test cases of a plan; per-case failures are reported in the result"""
    try:
        result = await service.import_test_cases(
            project_id=request.project_id,
            test_plan_id=request.test_plan_id,
            test_suite_ids=request.test_suite_ids,
            update_existing=request.update_existing,
        )
    except AzureDevOpsError:
        raise
    except Exception as e:
        logger.error("Failed to import test cases", project_id=request.project_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import test cases"
        )
    return ApiResponse(success=True, data=_dump(result), message=result.message)
