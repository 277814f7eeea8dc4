import uuid
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.repositories.interfaces.test_run_repository import ITestRunRepository
from app.models.database import TestArtifactModel, TestRunModel, TokenUsageModel
from app.models.schemas import TestArtifact, TestRun, TokenUsage


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLTestRunRepository(ITestRunRepository):
    """SQLAlchemy implementation of run, artifact and token usage storage"""

    def __init__(self, db: Session):
        self.db = db

    async def create_artifact(self, case_id: str, kind: str, path: str) -> TestArtifact:
        db_artifact = TestArtifactModel(
            id=str(uuid.uuid4()),
            case_id=case_id,
            kind=kind,
            path=path,
            created_at=_now(),
        )
        self.db.add(db_artifact)
        self.db.commit()
        self.db.refresh(db_artifact)
        return TestArtifact.model_validate(db_artifact)

    async def list_artifacts_for_case(self, case_id: str) -> List[TestArtifact]:
        rows = self.db.scalars(
            select(TestArtifactModel)
            .where(TestArtifactModel.case_id == case_id)
            .order_by(TestArtifactModel.created_at.desc())
        ).all()
        return [TestArtifact.model_validate(row) for row in rows]

    async def create_run(self, case_id: str, status: str, browser: str, env: str) -> TestRun:
        db_run = TestRunModel(
            id=str(uuid.uuid4()),
            case_id=case_id,
            started_at=_now(),
            status=status,
            browser=browser,
            env=env,
        )
        self.db.add(db_run)
        self.db.commit()
        self.db.refresh(db_run)
        return TestRun.model_validate(db_run)

    async def get_run(self, run_id: str) -> Optional[TestRun]:
        db_run = self.db.get(TestRunModel, run_id)
        if db_run:
            return TestRun.model_validate(db_run)
        return None

    async def record_token_usage(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost_usd: float,
        run_id: Optional[str] = None,
    ) -> TokenUsage:
        db_usage = TokenUsageModel(
            id=str(uuid.uuid4()),
            run_id=run_id,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost_usd=cost_usd,
            created_at=_now(),
        )
        self.db.add(db_usage)
        self.db.commit()
        self.db.refresh(db_usage)
        return TokenUsage.model_validate(db_usage)

    async def list_token_usage_for_run(self, run_id: str) -> List[TokenUsage]:
        rows = self.db.scalars(select(TokenUsageModel).where(TokenUsageModel.run_id == run_id)).all()
        return [TokenUsage.model_validate(row) for row in rows]
