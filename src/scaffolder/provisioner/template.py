"""Template materialization into a newly created repository.

Clones a template repository into a temporary working directory, drops
its history, re-initializes it as a fresh repository with a generated
README, and pushes a single commit to the new remote. The working
directory is removed on every exit path.
"""

import logging
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from src.scaffolder.errors import GitOperationError
from src.scaffolder.models import MaterializedContent
from src.scaffolder.provisioner.git import GitRunner

logger = logging.getLogger(__name__)

WORKING_DIR_PREFIX = "repo-"
README_FILENAME = "README.md"
DEFAULT_COMMIT_MESSAGE = "Initial commit from template"


class TemplateMaterializer:
    """Copies template content, without history, into a new remote.

    Not idempotent: running it twice against the same remote fails at
    push (non-fast-forward) or creates a duplicate initial commit,
    depending on host policy.

    Attributes:
        git: Runner used for every git command.
        branch: Branch created locally and pushed to the remote.
        author_name: Committer name for the initial commit.
        author_email: Committer email for the initial commit.
        temp_root: Parent directory for working trees (system default if None).
    """

    def __init__(
        self,
        git: GitRunner,
        branch: str = "master",
        author_name: str = "Repository Scaffolder",
        author_email: str = "scaffolder@tilabs.local",
        temp_root: Optional[Path] = None,
    ):
        self.git = git
        self.branch = branch
        self.author_name = author_name
        self.author_email = author_email
        self.temp_root = temp_root

    @asynccontextmanager
    async def working_directory(self) -> AsyncIterator[Path]:
        """Acquire a uniquely named working directory, removed on exit."""
        try:
            path = Path(
                tempfile.mkdtemp(
                    prefix=WORKING_DIR_PREFIX,
                    dir=str(self.temp_root) if self.temp_root else None,
                )
            )
        except OSError as exc:
            raise GitOperationError(
                "mkdtemp", f"Failed to create working directory: {exc}"
            ) from exc

        try:
            yield path
        finally:
            self._remove_directory(path)

    async def materialize(
        self,
        template_repo_url: str,
        target_repo_url: str,
        readme_content: str,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> MaterializedContent:
        """Push the template's content as a single commit to the target.

        Args:
            template_repo_url: Authenticated URL of the template repository.
            target_repo_url: Authenticated URL of the new, empty repository.
            readme_content: Text written to README.md.
            commit_message: Message of the single initial commit.

        Returns:
            MaterializedContent with the pushed commit and file count.

        Raises:
            GitOperationError: If cloning, filesystem work, committing or
                pushing fails. The working directory is removed first.
        """
        async with self.working_directory() as workdir:
            logger.info(
                "Cloning template repository",
                extra={
                    "template": self.git.redact(template_repo_url),
                    "working_directory": str(workdir),
                },
            )
            await self.git.run("clone", "clone", template_repo_url, str(workdir))

            self._reset_history(workdir)
            await self.git.run("init", "init", "--quiet", cwd=workdir)
            await self.git.run(
                "init",
                "symbolic-ref",
                "HEAD",
                f"refs/heads/{self.branch}",
                cwd=workdir,
            )

            self._write_readme(workdir, readme_content)

            await self.git.run(
                "remote", "remote", "add", "origin", target_repo_url, cwd=workdir
            )
            await self.git.run("add", "add", "-A", cwd=workdir)
            await self.git.run(
                "commit",
                "-c",
                f"user.name={self.author_name}",
                "-c",
                f"user.email={self.author_email}",
                "-c",
                "commit.gpgsign=false",
                "commit",
                "--quiet",
                "-m",
                commit_message,
                cwd=workdir,
            )
            commit_sha = (
                await self.git.run("rev-parse", "rev-parse", "HEAD", cwd=workdir)
            ).strip()
            tracked = await self.git.run("ls-files", "ls-files", cwd=workdir)

            await self.git.run(
                "push", "push", "--quiet", "origin", self.branch, cwd=workdir
            )

            content = MaterializedContent(
                commit_sha=commit_sha,
                branch=self.branch,
                file_count=len(tracked.splitlines()),
            )

        logger.info(
            "Template content pushed",
            extra={
                "target": self.git.redact(target_repo_url),
                "commit": content.commit_sha,
                "file_count": content.file_count,
            },
        )
        return content

    def _reset_history(self, workdir: Path) -> None:
        """Delete the cloned .git directory so no history or remote survives."""
        git_dir = workdir / ".git"
        try:
            shutil.rmtree(git_dir)
        except OSError as exc:
            raise GitOperationError(
                "reset", f"Failed to remove template history: {exc}"
            ) from exc

    def _write_readme(self, workdir: Path, content: str) -> None:
        try:
            (workdir / README_FILENAME).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise GitOperationError(
                "write", f"Failed to write {README_FILENAME}: {exc}"
            ) from exc

    def _remove_directory(self, workdir: Path) -> None:
        try:
            shutil.rmtree(workdir)
            logger.debug(
                "Removed working directory",
                extra={"working_directory": str(workdir)},
            )
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception(
                "Failed to remove working directory",
                extra={"working_directory": str(workdir)},
            )
