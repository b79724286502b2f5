"""Database models for the approval flow backend."""

from .assignment import CampaignFlow
from .auth import ApiToken
from .directory import Campaign, Role
from .flowchain import (
    FlowChain,
    FlowStage,
    FlowStep,
    FlowStepRole,
    FlowTransition,
    StageTransition,
)

__all__ = [
    "ApiToken",
    "Campaign",
    "CampaignFlow",
    "FlowChain",
    "FlowStage",
    "FlowStep",
    "FlowStepRole",
    "FlowTransition",
    "Role",
    "StageTransition",
]
