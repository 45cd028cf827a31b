"""Canned scenario catalog used ahead of the intent-based responders."""

from .catalog import CaseCreationStep, CaseInfo, Scenario, ScenarioCatalog

__all__ = ["CaseCreationStep", "CaseInfo", "Scenario", "ScenarioCatalog"]
