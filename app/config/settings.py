from pydantic_settings import BaseSettings
from typing import List, Optional

from app.models.azure_devops import AzureDevOpsConfig


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    api_prefix: str = "/api"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Azure DevOps Integration (secrets come from environment)
    ado_org_url: Optional[str] = None
    ado_project: Optional[str] = None
    ado_pat: Optional[str] = None
    ado_request_timeout_seconds: float = 30.0

    # Database Configuration
    database_url: str = "sqlite:///./data/alpha.db"

    # Test scaffolding
    generated_tests_dir: str = "/e2e/tests"
    # Model name recorded on placeholder token usage rows
    openai_model: str = "gpt-4o-mini"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def azure_devops_config(self) -> Optional[AzureDevOpsConfig]:
        """Connection settings for the configured organization, if complete"""
        if not (self.ado_org_url and self.ado_project and self.ado_pat):
            return None
        return AzureDevOpsConfig(
            organization_url=self.ado_org_url,
            project_slug=self.ado_project,
            secret_token=self.ado_pat,
        )


# Global settings instance
settings = Settings()
