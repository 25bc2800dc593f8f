from __future__ import annotations

from .base import Workflow
from .check import CheckWorkflow, TallyWorkflow
from .chemical import ChemicalTestWorkflow
from .full_kitting import FullKittingWorkflow
from .job_cards import JobCardsWorkflow
from .lab_tests import LabTest1Workflow, LabTest2Workflow
from .orders import OrdersWorkflow
from .production import ProductionWorkflow

"""Page id -> workflow."""

__all__ = [
    "STAGE_PAGES",
    "UnknownPageError",
    "all_workflows",
    "get_workflow",
]

_WORKFLOWS: tuple[type[Workflow], ...] = (
    OrdersWorkflow,
    FullKittingWorkflow,
    JobCardsWorkflow,
    ProductionWorkflow,
    LabTest1Workflow,
    LabTest2Workflow,
    ChemicalTestWorkflow,
    CheckWorkflow,
    TallyWorkflow,
)

# pending / history を持つページ (ダッシュボードの集計対象)
STAGE_PAGES = tuple(w.page_id for w in _WORKFLOWS if w.needs_item)


class UnknownPageError(KeyError):
    pass


def all_workflows() -> list[Workflow]:
    return [w() for w in _WORKFLOWS]


def get_workflow(page_id: str) -> Workflow:
    for w in _WORKFLOWS:
        if w.page_id == page_id:
            return w()
    raise UnknownPageError(page_id)
