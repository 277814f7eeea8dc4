from typing import List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import delete, func, select
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.models.azure_devops import ParsedStep
from app.models.database import TestCaseModel, TestStepModel
from app.models.schemas import TestCase, TestCaseUpsert, TestStep


class SQLTestCaseRepository(ITestCaseRepository):
    """SQLAlchemy implementation of the local test case store"""

    def __init__(self, db: Session):
        self.db = db

    async def find_case_by_id(self, case_id: str) -> Optional[TestCase]:
        db_test_case = self.db.get(TestCaseModel, case_id)
        if db_test_case:
            return TestCase.model_validate(db_test_case)
        return None

    async def upsert_case(self, data: TestCaseUpsert, commit: bool = True) -> bool:
        """Insert the case, or overwrite every mutable field of the existing row"""
        db_test_case = self.db.get(TestCaseModel, data.id)
        created = db_test_case is None

        if created:
            self.db.add(TestCaseModel(**data.model_dump()))
        else:
            for field, value in data.model_dump(exclude={"id"}).items():
                setattr(db_test_case, field, value)

        self.db.flush()
        if commit:
            self.db.commit()
        return created

    async def replace_steps(self, case_id: str, steps: Sequence[ParsedStep], commit: bool = True) -> int:
        self.db.execute(delete(TestStepModel).where(TestStepModel.case_id == case_id))
        # Drop stale instances of the deleted rows so re-inserted ids don't collide
        db_test_case = self.db.get(TestCaseModel, case_id)
        if db_test_case is not None:
            self.db.expire(db_test_case, ["steps"])

        for step in steps:
            self.db.add(
                TestStepModel(
                    id=f"{case_id}-{step.position}",
                    case_id=case_id,
                    step_index=step.position,
                    action=step.action,
                    expected=step.expected_result or None,
                )
            )

        self.db.flush()
        if commit:
            self.db.commit()
        return len(steps)

    async def save_case_with_steps(self, data: TestCaseUpsert, steps: Sequence[ParsedStep]) -> bool:
        try:
            created = await self.upsert_case(data, commit=False)
            await self.replace_steps(data.id, steps, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return created

    async def get_steps(self, case_id: str) -> List[TestStep]:
        rows = self.db.scalars(
            select(TestStepModel)
            .where(TestStepModel.case_id == case_id)
            .order_by(TestStepModel.step_index)
        ).all()
        return [TestStep.model_validate(row) for row in rows]

    async def list_cases(
        self,
        area: Optional[str] = None,
        priority: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[TestCase], int]:
        """Equality filters on area/priority; the count uses the same predicate"""
        conditions = []
        if area:
            conditions.append(TestCaseModel.area == area)
        if priority is not None:
            conditions.append(TestCaseModel.priority == priority)

        page = max(page, 1)
        query = (
            select(TestCaseModel)
            .where(*conditions)
            .order_by(TestCaseModel.last_synced_at.desc(), TestCaseModel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_query = select(func.count()).select_from(TestCaseModel).where(*conditions)

        rows = self.db.scalars(query).all()
        total = self.db.execute(count_query).scalar_one()
        return [TestCase.model_validate(row) for row in rows], total

    async def delete_case(self, case_id: str) -> bool:
        """Delete a case; steps and artifacts go with it"""
        db_test_case = self.db.get(TestCaseModel, case_id)
        if not db_test_case:
            return False

        try:
            self.db.delete(db_test_case)
            self.db.commit()
        except Exception:
            # Runs still reference the case
            self.db.rollback()
            raise
        return True
