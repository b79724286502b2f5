"""Flow chain definition models: chains, stages, steps, role grants and transitions."""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db


def _new_id() -> str:
    return str(uuid.uuid4())


DEFAULT_EXECUTION_MODE = "SEQUENTIAL"
DEFAULT_APPROVAL_POLICY = "ALL"
DEFAULT_CONDITION = "SUCCESS"


class FlowChain(db.Model):
    """A named approval process owned by one company."""

    __tablename__ = "flow_chains"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    company_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # Bumped on every graph replacement; clients echo it back to detect stale writes.
    revision = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    stages = db.relationship(
        "FlowStage",
        back_populates="chain",
        order_by="FlowStage.order",
        lazy="select",
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<FlowChain {self.name!r} r{self.revision}>"


class FlowStage(db.Model):
    """An ordered phase of a chain grouping one or more steps."""

    __tablename__ = "flow_stages"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    chain_id = db.Column(
        db.String(36), db.ForeignKey("flow_chains.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    execution_mode = db.Column(db.String(64), nullable=False, default=DEFAULT_EXECUTION_MODE)

    chain = db.relationship("FlowChain", back_populates="stages")
    steps = db.relationship(
        "FlowStep",
        back_populates="stage",
        order_by="FlowStep.order_in_stage",
    )
    outgoing_transitions = db.relationship(
        "StageTransition",
        foreign_keys="StageTransition.from_stage_id",
        back_populates="from_stage",
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<FlowStage {self.name!r} #{self.order}>"


class FlowStep(db.Model):
    """A unit of work inside a stage, optionally gated by role approvals."""

    __tablename__ = "flow_steps"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    chain_id = db.Column(
        db.String(36), db.ForeignKey("flow_chains.id"), nullable=False, index=True
    )
    stage_id = db.Column(
        db.String(36), db.ForeignKey("flow_stages.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_in_stage = db.Column(db.Integer, nullable=False, default=0)
    approval_policy = db.Column(db.String(64), nullable=False, default=DEFAULT_APPROVAL_POLICY)

    stage = db.relationship("FlowStage", back_populates="steps")
    assigned_roles = db.relationship("FlowStepRole", back_populates="step")
    outgoing_transitions = db.relationship(
        "FlowTransition",
        foreign_keys="FlowTransition.from_step_id",
        back_populates="from_step",
    )

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<FlowStep {self.name!r}>"


class FlowStepRole(db.Model):
    """Grant requiring (or allowing) a role to approve a step."""

    __tablename__ = "flow_step_roles"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    step_id = db.Column(
        db.String(36), db.ForeignKey("flow_steps.id"), nullable=False, index=True
    )
    # Roles live in an external directory, so no foreign key is enforced here.
    role_id = db.Column(db.String(64), nullable=False)
    required = db.Column(db.Boolean, nullable=False, default=True)

    step = db.relationship("FlowStep", back_populates="assigned_roles")
    role = db.relationship(
        "Role",
        primaryjoin="foreign(FlowStepRole.role_id) == Role.id",
        viewonly=True,
    )


class FlowTransition(db.Model):
    """Directed edge between two steps, possibly across stages."""

    __tablename__ = "flow_transitions"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    from_step_id = db.Column(
        db.String(36), db.ForeignKey("flow_steps.id"), nullable=False, index=True
    )
    to_step_id = db.Column(
        db.String(36), db.ForeignKey("flow_steps.id"), nullable=False, index=True
    )
    condition = db.Column(db.String(255), nullable=False, default=DEFAULT_CONDITION)

    from_step = db.relationship(
        "FlowStep", foreign_keys=[from_step_id], back_populates="outgoing_transitions"
    )
    to_step = db.relationship("FlowStep", foreign_keys=[to_step_id])


class StageTransition(db.Model):
    """Directed edge between two stages of the same chain."""

    __tablename__ = "stage_transitions"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    from_stage_id = db.Column(
        db.String(36), db.ForeignKey("flow_stages.id"), nullable=False, index=True
    )
    to_stage_id = db.Column(
        db.String(36), db.ForeignKey("flow_stages.id"), nullable=False, index=True
    )
    condition = db.Column(db.String(255), nullable=False, default=DEFAULT_CONDITION)

    from_stage = db.relationship(
        "FlowStage", foreign_keys=[from_stage_id], back_populates="outgoing_transitions"
    )
    to_stage = db.relationship("FlowStage", foreign_keys=[to_stage_id])
