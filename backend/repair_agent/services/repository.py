"""
Repository Manager — clone, write-file, commit-and-push behind one object.
"""

import logging
from typing import Optional

from repair_agent.services.clone_service import CloneService
from repair_agent.services.git_ops import GitOps
from repair_agent.services.patch_applier import write_file
from repair_agent.services.workspace import Workspace

logger = logging.getLogger(__name__)


class RepositoryManager:
    """Owns the working copies of runs and every operation on them."""

    def __init__(
        self,
        workspace: Optional[Workspace] = None,
        clone_service: Optional[CloneService] = None,
    ):
        self.workspace = workspace or Workspace()
        self.clone_service = clone_service or CloneService()

    def allocate(self, team_name: str) -> str:
        return self.workspace.allocate(team_name)

    def release(self, local_path: Optional[str]) -> None:
        self.workspace.release(local_path)

    def clone(self, url: str, work_dir_hint: str) -> str:
        """Clone into `work_dir_hint` (an allocated, empty run directory)."""
        return self.clone_service.clone(url, work_dir_hint)

    def render_tree(self, local_path: str) -> str:
        return self.clone_service.render_tree(local_path)

    def write_file(self, local_path: str, relative_file_path: str, content: str) -> str:
        return write_file(local_path, relative_file_path, content)

    def commit_and_push(self, local_path: str, remote_url: str, branch_name: str, message: str) -> str:
        return GitOps(local_path).commit_and_push(remote_url, branch_name, message)
