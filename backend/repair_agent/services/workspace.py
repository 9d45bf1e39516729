"""
Workspace — Per-run working directories under a configured root.
"""

import os
import re
import shutil
import time
import uuid
import logging
from typing import Optional

from repair_agent.config import settings
from repair_agent.errors import WorkspaceError

logger = logging.getLogger(__name__)


class Workspace:
    """Allocates and releases exclusive working-copy directories."""

    def __init__(self, root: Optional[str] = None):
        self.root = os.path.abspath(root or settings.workspace_root)

    def allocate(self, team_name: str) -> str:
        """
        Create a new, empty directory for one run.
        Named TEAM_<ms timestamp>_<salt> so concurrent runs never collide.
        """
        slug = re.sub(r"[^A-Za-z0-9_-]+", "_", team_name.strip()).strip("_") or "run"
        name = f"{slug}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        path = os.path.join(self.root, name)
        try:
            os.makedirs(self.root, exist_ok=True)
            os.makedirs(path)
        except OSError as e:
            raise WorkspaceError(f"Could not create working directory {path}: {e}") from e
        logger.info(f"Allocated working directory {path}")
        return path

    def contains(self, path: str) -> bool:
        path = os.path.abspath(path)
        return os.path.commonpath([self.root, path]) == self.root and path != self.root

    def release(self, path: Optional[str]) -> None:
        """Remove a run directory. Paths outside the root are left alone."""
        if not path:
            return
        if not self.contains(path):
            logger.warning(f"Refusing to release {path}: not under {self.root}")
            return
        shutil.rmtree(path, ignore_errors=True)
        logger.info(f"Released working directory {path}")
