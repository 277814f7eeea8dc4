from typing import Callable, Optional
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.models.azure_devops import AzureDevOpsConfig
from app.repositories.interfaces.azure_devops_client import IAzureDevOpsClient
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.repositories.interfaces.test_run_repository import ITestRunRepository

from app.repositories.implementations.azure_devops_client import AzureDevOpsClient
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.repositories.implementations.sql_test_run_repository import SQLTestRunRepository

from app.services.discovery_service import DiscoveryService
from app.services.import_service import ImportService
from app.services.test_run_service import TestRunService
from app.config.settings import settings
from app.core.database import get_database


class Container:
    """Dependency injection container"""

    def __init__(self):
        self._azure_devops_client: Optional[IAzureDevOpsClient] = None

    def client_factory(self) -> Callable[[AzureDevOpsConfig], IAzureDevOpsClient]:
        """Builds clients for caller-supplied credentials (connection tests)"""
        return lambda config: AzureDevOpsClient(config, timeout=settings.ado_request_timeout_seconds)

    def azure_devops_client(self) -> IAzureDevOpsClient:
        """Get the client for the configured organization (singleton)"""
        if self._azure_devops_client is None:
            config = settings.azure_devops_config()
            if config is None:
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Azure DevOps is not configured (ADO_ORG_URL, ADO_PROJECT, ADO_PAT)",
                )
            self._azure_devops_client = self.client_factory()(config)
        return self._azure_devops_client

    def test_case_repository(self, db: Session) -> ITestCaseRepository:
        return SQLTestCaseRepository(db)

    def test_run_repository(self, db: Session) -> ITestRunRepository:
        return SQLTestRunRepository(db)

    def test_run_service(self, db: Session) -> TestRunService:
        return TestRunService(
            test_case_repository=self.test_case_repository(db),
            test_run_repository=self.test_run_repository(db),
            generated_tests_dir=settings.generated_tests_dir,
            model=settings.openai_model,
        )


# Global container instance
container = Container()


# Dependency providers for FastAPI
def get_client_factory() -> Callable[[AzureDevOpsConfig], IAzureDevOpsClient]:
    """FastAPI dependency for building ad-hoc Azure DevOps clients"""
    return container.client_factory()


def get_azure_devops_client() -> IAzureDevOpsClient:
    """FastAPI dependency for the configured Azure DevOps client"""
    return container.azure_devops_client()


def get_test_case_repository(db: Session = Depends(get_database)) -> ITestCaseRepository:
    """FastAPI dependency for test case repository"""
    return container.test_case_repository(db)


def get_discovery_service(
    client: IAzureDevOpsClient = Depends(get_azure_devops_client),
) -> DiscoveryService:
    """FastAPI dependency for discovery service"""
    return DiscoveryService(client)


def get_import_service(
    client: IAzureDevOpsClient = Depends(get_azure_devops_client),
    db: Session = Depends(get_database),
) -> ImportService:
    """FastAPI dependency for import service"""
    return ImportService(azure_devops_client=client, test_case_repository=container.test_case_repository(db))


def get_test_run_service(db: Session = Depends(get_database)) -> TestRunService:
    """FastAPI dependency for test run service"""
    return container.test_run_service(db)
