# =============================================================================
# Project Loader
# =============================================================================
# Gives handlers a working copy of a repository: either an existing
# directory (load) or a fresh git clone (clone). Child processes run with a
# timeout; git network operations are retried with backoff.
# =============================================================================

import logging
import os
import subprocess
import tempfile
import uuid
from typing import List, Optional

from skill_sdk.clients.retry import retry
from skill_sdk.runtime.log import redact

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 600
GIT_USER_NAME = "Atomist Bot"
GIT_USER_EMAIL = "bot@atomist.com"


class ProjectCommandError(RuntimeError):
    """Raised when a project command exits nonzero or times out."""

    def __init__(self, cmd: List[str], returncode: Optional[int], stderr: str = ""):
        super().__init__(redact(f"{' '.join(cmd)} failed ({returncode}): {stderr.strip()}"))
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr


class Project:
    """A working copy rooted at base_dir."""

    def __init__(self, base_dir: str, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        self.base_dir = base_dir
        self.timeout = timeout

    def path(self, *elements: str) -> str:
        return os.path.join(self.base_dir, *elements)

    def spawn(self, cmd: str, args: List[str] = None, timeout: int = None) -> subprocess.CompletedProcess:
        """Run a command in the project; the result is returned whatever the exit code."""
        argv = [cmd, *(args or [])]
        logger.debug(redact(f"{self.base_dir} ==> {' '.join(argv)}"))
        try:
            result = subprocess.run(
                argv, cwd=self.base_dir, capture_output=True, text=True,
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProjectCommandError(argv, None, f"timed out after {e.timeout}s") from e
        for line in (result.stdout or "").splitlines():
            logger.debug(line.rstrip())
        return result

    def exec(self, cmd: str, args: List[str] = None, timeout: int = None) -> str:
        """Run a command in the project and return stdout; nonzero exit raises."""
        result = self.spawn(cmd, args, timeout)
        if result.returncode != 0:
            raise ProjectCommandError([cmd, *(args or [])], result.returncode, result.stderr or "")
        return (result.stdout or "").strip()


def _set_user_config(project: Project) -> None:
    project.exec("git", ["config", "user.name", GIT_USER_NAME])
    project.exec("git", ["config", "user.email", GIT_USER_EMAIL])


class ProjectLoader:
    """Creates Project instances for handlers."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT_SECONDS, retries: int = 3):
        self.timeout = timeout
        self.retries = retries

    def load(self, base_dir: str) -> Project:
        return Project(base_dir, self.timeout)

    def clone(self, url: str, directory: str = None, branch: str = None, depth: int = 1,
              timeout: int = None) -> Project:
        """
        Clone url into directory (a fresh temp dir by default).

        Raises:
            ProjectCommandError: if the clone still fails after retries
        """
        directory = directory or os.path.join(tempfile.gettempdir(), str(uuid.uuid4()))
        os.makedirs(directory, exist_ok=True)
        args = ["clone", url, directory]
        if depth and depth > 0:
            args.append(f"--depth={depth}")
        if branch:
            args += ["--branch", branch]

        runner = Project(os.path.dirname(directory) or ".", timeout or self.timeout)
        retry(lambda: runner.exec("git", args), retries=self.retries, retry_on=(ProjectCommandError,))

        project = Project(directory, timeout or self.timeout)
        _set_user_config(project)
        return project
