import json
import logging
import uuid

import pytest

from app.config.settings import settings
from app.core.dependencies import container, get_azure_devops_client
from app.core.exceptions import AuthenticationError, RateLimitError
from app.models import azure_devops as ado
from main import app


def seed_cases(test_client, fake_client, steps_html):
    fake_client.add_suite(7, test_case_count=3)
    fake_client.add_case(7, 1, title="Login", area="Shop\\Auth", priority=1,
                         steps_html=steps_html(("Open", "Form shown"), ("Submit", "")))
    fake_client.add_case(7, 2, title="Cart", area="Shop\\Cart", priority=2)
    fake_client.add_case(7, 3, title="Logout", area="Shop\\Auth", priority=2)
    response = test_client.post("/api/azure-devops/import", json={"projectId": "Shop", "testPlanId": 12})
    assert response.status_code == 200
    return response.json()


def test_health_check(test_client):
    """Test health check endpoint"""
    response = test_client.get("/api/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["stats"] == {"testCases": 0, "testSteps": 0, "testRuns": 0, "tokenUsage": 0}
    assert "timestamp" in data
    assert "version" in data
    assert "environment" in data


def test_readiness_check(test_client):
    """Test readiness check endpoint"""
    response = test_client.get("/api/health/readiness")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"
    assert "timestamp" in data


def test_connection_test_success(test_client):
    response = test_client.post(
        "/api/azure-devops/test-connection",
        json={"orgUrl": "https://dev.azure.com/contoso", "project": "Shop", "pat": "secret"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["success"] is True
    assert body["data"]["organizationName"] == "contoso"


def test_connection_test_failure_is_reported_in_data(test_client, fake_client):
    fake_client.connection_result = ado.ConnectionTestResult(success=False, error="Access denied")

    response = test_client.post(
        "/api/azure-devops/test-connection",
        json={"orgUrl": "https://dev.azure.com/contoso", "project": "Shop", "pat": "secret"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "success": False,
        "organizationName": None,
        "projectName": None,
        "error": "Access denied",
        "permissions": None,
    }


def test_connection_test_rejects_invalid_url(test_client):
    response = test_client.post(
        "/api/azure-devops/test-connection",
        json={"orgUrl": "not a url", "project": "Shop", "pat": "secret"},
    )

    assert response.status_code == 422


def test_organizations(test_client):
    response = test_client.get("/api/azure-devops/organizations")

    assert response.status_code == 200
    assert response.json()["data"] == [{"name": "contoso", "url": "https://dev.azure.com/contoso"}]


def test_projects(test_client, fake_client):
    fake_client.projects = [ado.Project(id="p1", name="Shop")]

    response = test_client.get("/api/azure-devops/projects")

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["data"]] == ["Shop"]


def test_test_plans_page(test_client, fake_client):
    fake_client.test_plans = [ado.TestPlan(id=i, name=f"Plan {i}") for i in range(1, 4)]

    response = test_client.get("/api/azure-devops/test-plans", params={"projectId": "Shop", "skip": 1, "top": 1})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [p["id"] for p in data["testPlans"]] == [2]
    assert data["totalCount"] == 3


def test_test_plans_require_project(test_client):
    assert test_client.get("/api/azure-devops/test-plans").status_code == 422


def test_single_test_plan(test_client, fake_client):
    fake_client.test_plans = [ado.TestPlan(id=12, name="Release", area_path="Shop")]

    found = test_client.get("/api/azure-devops/test-plans/12", params={"projectId": "Shop"})
    missing = test_client.get("/api/azure-devops/test-plans/99", params={"projectId": "Shop"})

    assert found.status_code == 200
    assert found.json()["data"]["areaPath"] == "Shop"
    assert missing.status_code == 404


def test_test_suites(test_client, fake_client):
    fake_client.add_suite(7, name="Checkout", test_case_count=4)

    response = test_client.get("/api/azure-devops/test-suites", params={"projectId": "Shop", "testPlanId": 12})

    assert response.status_code == 200
    assert response.json()["data"][0]["testCaseCount"] == 4


@pytest.mark.parametrize(
    "error, status_code",
    [
        (AuthenticationError("Access denied", status_code=401), 401),
        (RateLimitError("Slow down", status_code=429), 429),
    ],
)
def test_classified_errors_are_mapped(test_client, fake_client, error, status_code):
    fake_client.suites_error = error

    response = test_client.get("/api/azure-devops/test-suites", params={"projectId": "Shop", "testPlanId": 12})

    assert response.status_code == status_code
    assert response.json() == {"success": False, "error": error.code, "message": error.message}


def test_unexpected_errors_hide_details(test_client, fake_client):
    async def broken(project_id, test_plan_id):
        raise RuntimeError("pat=abc leaked")

    fake_client.get_test_plan = broken

    response = test_client.get("/api/azure-devops/test-plans/12", params={"projectId": "Shop"})

    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error"
    assert "leaked" not in response.text


def test_import_returns_the_result(test_client, fake_client, steps_html):
    body = seed_cases(test_client, fake_client, steps_html)

    assert body["success"] is True
    assert body["message"] == "Import completed: 3 imported, 0 updated, 0 skipped, 0 failed"
    progress = body["data"]["progress"]
    assert progress["importedTestCases"] == 3
    assert progress["processedTestCases"] == 3
    assert progress["status"] == "completed"


def test_import_with_failures_is_still_200(test_client, fake_client):
    fake_client.add_suite(7, test_case_count=1)
    fake_client.add_case(7, 1)
    fake_client.failing_cases[1] = AuthenticationError("denied", status_code=401)

    response = test_client.post("/api/azure-devops/import", json={"projectId": "Shop", "testPlanId": 12})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["success"] is False
    assert data["progress"]["errors"] == [{"testCaseId": 1, "error": "denied"}]


@pytest.mark.parametrize(
    "payload",
    [
        {"projectId": "", "testPlanId": 12},
        {"projectId": "Shop", "testPlanId": 0},
        {"projectId": "Shop", "testPlanId": 12, "testSuiteIds": [0]},
    ],
)
def test_import_validates_input(test_client, payload):
    assert test_client.post("/api/azure-devops/import", json=payload).status_code == 422


def test_unconfigured_azure_devops_is_unavailable(test_client, monkeypatch):
    app.dependency_overrides.pop(get_azure_devops_client)
    container._azure_devops_client = None
    monkeypatch.setattr(settings, "ado_pat", None)

    response = test_client.get("/api/azure-devops/projects")

    assert response.status_code == 503


def test_list_cases_paginates_and_filters(test_client, fake_client, steps_html):
    seed_cases(test_client, fake_client, steps_html)

    everything = test_client.get("/api/cases").json()
    assert everything["success"] is True
    assert {c["id"] for c in everything["data"]} == {"1", "2", "3"}
    assert everything["pagination"] == {"page": 1, "limit": 20, "total": 3, "totalPages": 1}

    filtered = test_client.get("/api/cases", params={"area": "Shop\\Auth", "priority": 2}).json()
    assert [c["id"] for c in filtered["data"]] == ["3"]
    assert filtered["pagination"]["total"] == 1

    paged = test_client.get("/api/cases", params={"page": 2, "limit": 2}).json()
    assert len(paged["data"]) == 1
    assert paged["pagination"]["totalPages"] == 2


def test_list_cases_validates_query(test_client):
    assert test_client.get("/api/cases", params={"limit": 0}).status_code == 422
    assert test_client.get("/api/cases", params={"priority": 5}).status_code == 422


def test_case_detail_includes_steps(test_client, fake_client, steps_html):
    seed_cases(test_client, fake_client, steps_html)

    response = test_client.get("/api/cases/1")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Login"
    assert [(s["step_index"], s["action"], s["expected"]) for s in data["steps"]] == [
        (1, "Open", "Form shown"),
        (2, "Submit", None),
    ]
    assert test_client.get("/api/cases/404").status_code == 404


def test_delete_case(test_client, fake_client, steps_html):
    seed_cases(test_client, fake_client, steps_html)

    response = test_client.delete("/api/cases/1")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert test_client.get("/api/cases/1").status_code == 404
    assert test_client.delete("/api/cases/1").status_code == 404
    assert test_client.get("/api/health").json()["stats"]["testSteps"] == 0


def test_generate_and_execute_placeholders(test_client, fake_client, steps_html):
    seed_cases(test_client, fake_client, steps_html)

    generated = test_client.post("/api/tests/generate/1")
    assert generated.status_code == 200
    artifact_id = generated.json()["data"]["artifactId"]
    assert generated.json()["data"]["tokensUsed"] == 0

    executed = test_client.post("/api/tests/runs/1/execute", json={"browser": "firefox", "env": "staging"})
    assert executed.status_code == 200
    run_id = executed.json()["data"]["runId"]

    run = test_client.get(f"/api/tests/runs/{run_id}")
    assert run.status_code == 200
    body = run.json()
    assert body["data"]["status"] == "running"
    assert body["data"]["browser"] == "firefox"
    assert [a["id"] for a in body["artifacts"]] == [artifact_id]
    assert body["artifacts"][0]["path"].endswith("1.spec.ts")
    assert body["tokenUsage"] == []

    # A case with runs cannot be deleted
    assert test_client.delete("/api/cases/1").status_code == 409


def test_test_placeholders_for_unknown_ids(test_client):
    assert test_client.post("/api/tests/generate/404").status_code == 404
    assert test_client.post("/api/tests/runs/404/execute").status_code == 404
    assert test_client.get("/api/tests/runs/missing").status_code == 404


def test_execute_rejects_unknown_browser(test_client, fake_client, steps_html):
    seed_cases(test_client, fake_client, steps_html)

    response = test_client.post("/api/tests/runs/1/execute", json={"browser": "ie6"})

    assert response.status_code == 422


def test_request_id_is_echoed(test_client):
    generated = test_client.get("/api/health")
    forwarded = test_client.get("/api/health", headers={"X-Request-ID": "import-42"})

    assert str(uuid.UUID(generated.headers["X-Request-ID"])) == generated.headers["X-Request-ID"]
    assert forwarded.headers["X-Request-ID"] == "import-42"


def test_generated_request_id_is_logged_unmasked(test_client, caplog):
    caplog.set_level(logging.INFO)

    response = test_client.get("/api/health")

    handled = [json.loads(r.getMessage()) for r in caplog.records if "Request handled" in r.getMessage()]
    assert handled[-1]["request_id"] == response.headers["X-Request-ID"]
    assert handled[-1]["path"] == "/api/health"
