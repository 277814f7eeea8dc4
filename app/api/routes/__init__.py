from fastapi import APIRouter
from app.api.routes import azure_devops, health, test_cases, tests

api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router)
api_router.include_router(azure_devops.router)
api_router.include_router(test_cases.router)
api_router.include_router(tests.router)
