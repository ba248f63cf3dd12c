"""Conflict detection - files touched by several tasks of one wave."""

from sprintplan.conflict.detector import annotate_wave, detect_file_conflicts

__all__ = ["annotate_wave", "detect_file_conflicts"]
