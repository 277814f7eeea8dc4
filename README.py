"""
Azure DevOps Test Case Importer API

FastAPI backend that pulls test plans, suites and test cases (with their steps)
from Azure DevOps into a local SQLite test store.

Architecture Overview:
- Repository pattern for data access (SQL store, Azure DevOps REST client)
- Dependency Injection through a small container and FastAPI providers
- Interface-based design so services can run against fakes in tests

Key Features:
- Connection testing with caller-supplied organization URL, project and PAT
- Discovery of projects, test plans (searchable, paginated) and test suites
- Sequential import with per-case failure isolation and progress counters
- HTML step table parsing into ordered action / expected result pairs
- Structured JSON logging with secret redaction

Usage:
1. Set ADO_ORG_URL, ADO_PROJECT and ADO_PAT (environment or .env)
2. Install: pip install -e ".[test]"
3. Run the API: python main.py
4. Access API docs at: http://localhost:3001/api/docs
5. Or import from the command line: ado-import --project MyProject --plan 12

API Endpoints:
- GET    /api/health - Health check with store row counts
- GET    /api/health/readiness - Readiness check
- POST   /api/azure-devops/test-connection - Check credentials
- GET    /api/azure-devops/organizations - Configured organization
- GET    /api/azure-devops/projects - Projects in the organization
- GET    /api/azure-devops/test-plans?projectId= - Test plans (search, skip, top)
- GET    /api/azure-devops/test-plans/{id}?projectId= - One test plan
- GET    /api/azure-devops/test-suites?projectId=&testPlanId= - Suites of a plan
- POST   /api/azure-devops/import - Import test cases
- GET    /api/cases - Imported test cases (page, limit, area, priority)
- GET    /api/cases/{id} - Test case with steps
- DELETE /api/cases/{id} - Delete test case
- POST   /api/tests/generate/{caseId} - Generate test (placeholder)
- POST   /api/tests/runs/{caseId}/execute - Execute test (placeholder)
- GET    /api/tests/runs/{runId} - Test run details

Architecture Components:

1. Controllers (app/api/routes/):
   - Handle HTTP requests and responses
   - Input validation using Pydantic

2. Services (app/services/):
   - Import orchestration, discovery, step parsing, test run placeholders

3. Repositories (app/repositories/):
   - Interfaces plus SQL and Azure DevOps REST implementations

4. Models (app/models/):
   - Pydantic schemas for request/response and Azure DevOps payloads
   - SQLAlchemy models for the local store

5. Core (app/core/):
   - Database bootstrap, dependency injection, logging, error taxonomy

6. Configuration (app/config/):
   - Environment-based settings
"""

__version__ = "1.0.0"
__description__ = "Azure DevOps test case import and local test store"
