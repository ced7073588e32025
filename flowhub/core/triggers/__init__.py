"""Triggers module: subscription lifecycle, webhook intake and polling."""

from flowhub.core.triggers.engine import TriggerEngine, compute_deduplication_key

__all__ = ["TriggerEngine", "compute_deduplication_key"]
