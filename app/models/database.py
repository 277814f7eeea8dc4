from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class TestCaseModel(Base):
    __tablename__ = "test_cases"

    # Azure DevOps work item id, stored as text
    id = Column(String(32), primary_key=True)
    title = Column(Text, nullable=False)
    area = Column(Text, nullable=True)
    priority = Column(Integer, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    source_rev = Column(String(64), nullable=True)

    steps = relationship(
        "TestStepModel",
        back_populates="test_case",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TestStepModel.step_index",
    )
    artifacts = relationship(
        "TestArtifactModel",
        back_populates="test_case",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<TestCase(id={self.id}, title='{self.title}', source_rev='{self.source_rev}')>"


class TestStepModel(Base):
    __tablename__ = "test_steps"

    # "{case_id}-{step_index}"
    id = Column(String(64), primary_key=True)
    case_id = Column(String(32), ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False)
    step_index = Column(Integer, nullable=False)
    action = Column(Text, nullable=False)
    expected = Column(Text, nullable=True)

    test_case = relationship("TestCaseModel", back_populates="steps")

    __table_args__ = (Index("idx_test_steps_case", "case_id"),)

    def __repr__(self):
        return f"<TestStep(id={self.id}, step_index={self.step_index})>"


class TestArtifactModel(Base):
    __tablename__ = "test_artifacts"

    id = Column(String(36), primary_key=True)
    case_id = Column(String(32), ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(32), nullable=False)  # playwright, prompt, analysis
    path = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    test_case = relationship("TestCaseModel", back_populates="artifacts")

    __table_args__ = (Index("idx_test_artifacts_case", "case_id"),)


class TestRunModel(Base):
    __tablename__ = "test_runs"

    id = Column(String(36), primary_key=True)
    case_id = Column(String(32), ForeignKey("test_cases.id"), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False)  # passed, failed, skipped, error, running
    browser = Column(String(16), nullable=False)  # chromium, firefox, webkit
    env = Column(String(32), nullable=False)

    __table_args__ = (
        Index("idx_test_runs_case", "case_id"),
        Index("idx_test_runs_status", "status"),
    )

    def __repr__(self):
        return f"<TestRun(id={self.id}, case_id={self.case_id}, status='{self.status}')>"


class TokenUsageModel(Base):
    __tablename__ = "token_usage"

    id = Column(String(36), primary_key=True)
    # NULL for usage not tied to a run, e.g. generation cost estimates
    run_id = Column(String(36), ForeignKey("test_runs.id"), nullable=True)
    model = Column(String(100), nullable=False)
    prompt_tokens = Column(Integer, nullable=False)
    completion_tokens = Column(Integer, nullable=False)
    cost_usd = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_token_usage_run", "run_id"),)
