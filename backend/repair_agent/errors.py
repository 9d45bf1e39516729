"""Run-level exception hierarchy.

Anything raised from here aborts a run. Test failures are never raised;
they are folded into the run state instead.
"""

from typing import Optional


class RepairAgentError(Exception):
    """Base error."""


class WorkspaceError(RepairAgentError):
    """Working copy could not be created, or a path escapes it."""


class CloneError(RepairAgentError):
    """Repository is inaccessible or the clone failed."""


class OracleError(RepairAgentError):
    """An oracle call failed or returned a structurally invalid response."""


class AnalysisError(OracleError):
    """The build analyzer could not produce a valid analysis."""


class FixProposalError(OracleError):
    """The fix oracle could not produce a valid fix proposal."""


class PublishError(RepairAgentError):
    """Branch, commit or push failed.

    The run's final status and fix history are kept on the error so the
    caller can still report them.
    """

    def __init__(self, message: str, final_status: Optional[str] = None, fixes: Optional[list] = None):
        super().__init__(message)
        self.final_status = final_status
        self.fixes = list(fixes or [])
