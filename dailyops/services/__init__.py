"""
Service layer for business logic.
Services contain pure business logic without HTTP framework dependencies.
"""

from dailyops.services.instance_generator import InstanceGenerator
from dailyops.services.completion_tracker import CompletionTracker
from dailyops.services.day_gate import DayGate
from dailyops.services.checklist_query import ChecklistQueryService

__all__ = ["InstanceGenerator", "CompletionTracker", "DayGate", "ChecklistQueryService"]
