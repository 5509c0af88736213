from .orchestrator import Orchestrator, reply_for, status_for
from .form_workflow import FormWorkflow
from .table_extractor import TableExtractor, parse_table_rows
from .retry import run_with_retries
from .workflow_state import WorkflowRun, WorkflowState

__all__ = [
    "Orchestrator",
    "reply_for",
    "status_for",
    "FormWorkflow",
    "TableExtractor",
    "parse_table_rows",
    "run_with_retries",
    "WorkflowRun",
    "WorkflowState",
]
