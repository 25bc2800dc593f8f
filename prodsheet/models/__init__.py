"""Domain models for the production planning tool.

This package contains the domain model classes shared by the sheet read/write
path, the classification pipeline and the workflow pages.
"""

from .config_models import AppConfig, EndpointConfig, TabConfig
from .load_result import DashboardSummary, LoadResult, PageData, StageCount
from .record import Record
from .tabular import Cell, ColumnDef, TabularResult
from .user import User
from .workflow_item import RawMaterial, Stage, WorkflowItem

__all__ = [
    # Configuration models
    "AppConfig",
    "EndpointConfig",
    "TabConfig",
    # Read path
    "Cell",
    "ColumnDef",
    "Record",
    "TabularResult",
    # Derived views
    "DashboardSummary",
    "LoadResult",
    "PageData",
    "RawMaterial",
    "Stage",
    "StageCount",
    "User",
    "WorkflowItem",
]
