"""Transactional creation, replacement and deletion of flow chain graphs.

A replacement never diffs: the chain's stages, steps, role grants and
transitions are deleted and rebuilt from the submitted definition inside one
transaction, so every node gets a fresh id. Repeating the same request
therefore yields an identical structure with different ids and a higher
revision.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import or_, update

from ..campaigns.assignments import promote_default
from ..errors import AuthorizationError, ConflictError, NotFoundError
from ..extensions import db
from ..models.assignment import CampaignFlow
from ..models.flowchain import (
    FlowChain,
    FlowStage,
    FlowStep,
    FlowStepRole,
    FlowTransition,
    StageTransition,
)
from ..utils.transactions import run_atomically
from .builder import materialize_nodes
from .definition import ChainDefinition, parse_definition, parse_revision, require_name
from .serialize import get_flow_chain
from .wiring import wire_transitions


def _lock_chain(chain_id: str) -> FlowChain:
    chain = (
        db.session.query(FlowChain)
        .filter(FlowChain.id == chain_id)
        .with_for_update()
        .one_or_none()
    )
    if chain is None:
        raise NotFoundError("FlowChain not found")
    return chain


def _check_owner(chain: FlowChain, company_id: str) -> None:
    if chain.company_id != company_id:
        raise AuthorizationError("Forbidden - Access denied")


def teardown_graph(chain_id: str) -> int:
    """Delete the chain's graph, children before parents. Returns the stage count."""

    stage_ids = [
        stage_id
        for (stage_id,) in db.session.query(FlowStage.id).filter(FlowStage.chain_id == chain_id)
    ]
    if not stage_ids:
        return 0
    step_ids = [
        step_id
        for (step_id,) in db.session.query(FlowStep.id).filter(FlowStep.stage_id.in_(stage_ids))
    ]

    db.session.query(StageTransition).filter(
        or_(
            StageTransition.from_stage_id.in_(stage_ids),
            StageTransition.to_stage_id.in_(stage_ids),
        )
    ).delete(synchronize_session=False)
    if step_ids:
        db.session.query(FlowTransition).filter(
            or_(
                FlowTransition.from_step_id.in_(step_ids),
                FlowTransition.to_step_id.in_(step_ids),
            )
        ).delete(synchronize_session=False)
        db.session.query(FlowStepRole).filter(FlowStepRole.step_id.in_(step_ids)).delete(
            synchronize_session=False
        )
        db.session.query(FlowStep).filter(FlowStep.id.in_(step_ids)).delete(
            synchronize_session=False
        )
    db.session.query(FlowStage).filter(FlowStage.id.in_(stage_ids)).delete(
        synchronize_session=False
    )
    return len(stage_ids)


def _build_graph(chain: FlowChain, definition: ChainDefinition) -> None:
    # Edges may point at nodes declared later in the payload, so every node
    # has to exist before wiring starts.
    maps = materialize_nodes(chain, definition)
    wiring = wire_transitions(maps)
    current_app.logger.info(
        "Built chain %s: %s stages, %s steps, %s step transitions, %s stage transitions (%s skipped)",
        chain.id,
        len(maps.stage_ids),
        len(maps.step_ids),
        wiring.step_transitions,
        wiring.stage_transitions,
        wiring.skipped,
    )


def replace_flow_chain(
    chain_id: str,
    company_id: str,
    payload: Any,
) -> dict[str, Any]:
    """Replace the whole definition of a chain and return it hydrated.

    Checks run before any write, in order: name present, chain exists, chain
    owned by ``company_id``, rest of the definition valid, and the
    ``revision`` field equal to the stored revision so a client can only
    replace the version it last read.
    """

    require_name(payload)

    def _replace() -> None:
        chain = _lock_chain(chain_id)
        _check_owner(chain, company_id)
        definition = parse_definition(payload)
        expected_revision = parse_revision(payload)
        current_revision = chain.revision
        if expected_revision != current_revision:
            raise ConflictError(
                f"FlowChain was modified concurrently (revision {current_revision}, "
                f"expected {expected_revision})"
            )

        removed = teardown_graph(chain.id)

        result = db.session.execute(
            update(FlowChain)
            .where(FlowChain.id == chain.id, FlowChain.revision == current_revision)
            .values(
                name=definition.name,
                description=definition.description,
                revision=current_revision + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("FlowChain was modified concurrently")
        db.session.expire(chain)

        _build_graph(chain, definition)
        current_app.logger.info(
            "Replaced chain %s (revision %s -> %s, %s stages removed)",
            chain.id,
            current_revision,
            current_revision + 1,
            removed,
        )

    run_atomically("update flow chain", _replace)
    return get_flow_chain(chain_id, company_id)


def create_flow_chain(company_id: str, payload: Any) -> dict[str, Any]:
    """Create a chain owned by ``company_id`` together with its graph."""

    definition = parse_definition(payload)

    def _create() -> str:
        chain = FlowChain(
            company_id=company_id,
            name=definition.name,
            description=definition.description,
        )
        db.session.add(chain)
        db.session.flush()
        _build_graph(chain, definition)
        return chain.id

    chain_id = run_atomically("create flow chain", _create)
    current_app.logger.info("Created chain %s for company %s", chain_id, company_id)
    return get_flow_chain(chain_id, company_id)


def delete_flow_chain(chain_id: str, company_id: str) -> None:
    """Delete a chain, its graph and its campaign assignments."""

    def _delete() -> None:
        chain = _lock_chain(chain_id)
        _check_owner(chain, company_id)
        teardown_graph(chain.id)

        assignments = CampaignFlow.query.filter_by(flow_chain_id=chain.id).all()
        affected = {a.campaign_id for a in assignments if a.is_default}
        for assignment in assignments:
            db.session.delete(assignment)
        db.session.flush()
        for campaign_id in sorted(affected):
            promote_default(campaign_id)

        db.session.delete(chain)

    run_atomically("delete flow chain", _delete)
    current_app.logger.info("Deleted chain %s", chain_id)
