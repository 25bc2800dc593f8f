"""Workflow pages: one class per page of the production planner."""

from .base import FormValidationError, SubmitContext, Workflow
from .registry import STAGE_PAGES, UnknownPageError, all_workflows, get_workflow

__all__ = [
    "FormValidationError",
    "STAGE_PAGES",
    "SubmitContext",
    "UnknownPageError",
    "Workflow",
    "all_workflows",
    "get_workflow",
]
