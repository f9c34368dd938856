"""Candidate deduplication and reconciliation."""

from lorekeeper.notes.resolution.deduplicator import ExtractionDeduplicator
from lorekeeper.notes.resolution.reconciler import CampaignReconciler

__all__ = ["CampaignReconciler", "ExtractionDeduplicator"]
