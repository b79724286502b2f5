"""Top-level alias so ``approvalflow.create_app`` works from the repository root."""

from backend.approvalflow import Config, create_app

__all__ = ["Config", "create_app"]
