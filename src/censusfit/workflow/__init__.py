"""End-to-end census regression workflow."""

from censusfit.workflow.pipeline import CensusWorkflow, WorkflowResult, run_workflow

__all__ = ["CensusWorkflow", "WorkflowResult", "run_workflow"]
