"""Unit tests for template materialization.

The first group drives TemplateMaterializer with a scripted GitRunner to
check ordering and cleanup. The second group runs real git against local
repositories and is skipped when git is not installed.
"""

import asyncio
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from src.scaffolder.errors import GitOperationError
from src.scaffolder.provisioner.git import GitRunner
from src.scaffolder.provisioner.template import (
    README_FILENAME,
    WORKING_DIR_PREFIX,
    TemplateMaterializer,
)


def run_async(coro):
    return asyncio.run(coro)


class ScriptedGitRunner(GitRunner):
    """GitRunner that records commands instead of executing git."""

    def __init__(self, fail_on: Optional[str] = None):
        super().__init__()
        self.fail_on = fail_on
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.workdir: Optional[Path] = None

    async def run(self, operation, *args, cwd=None):
        self.calls.append((operation, args))
        if operation == "clone":
            self.workdir = Path(args[-1])
            (self.workdir / ".git").mkdir()
            (self.workdir / ".git" / "HEAD").write_text("ref: refs/heads/main")
            (self.workdir / "app.py").write_text("print('template')")
        if operation == self.fail_on:
            raise GitOperationError(operation, "simulated failure")
        if operation == "rev-parse":
            return "abc123\n"
        if operation == "ls-files":
            return "README.md\napp.py\n"
        return ""

    @property
    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]


@pytest.fixture
def work_root(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return root


class TestWorkingDirectory:

    def test_directory_removed_after_use(self, work_root):
        materializer = TemplateMaterializer(git=ScriptedGitRunner(), temp_root=work_root)

        async def use():
            async with materializer.working_directory() as path:
                assert path.is_dir()
                assert path.name.startswith(WORKING_DIR_PREFIX)
                (path / "file.txt").write_text("x")
                return path

        path = run_async(use())
        assert not path.exists()

    def test_directory_removed_when_body_raises(self, work_root):
        materializer = TemplateMaterializer(git=ScriptedGitRunner(), temp_root=work_root)
        seen: List[Path] = []

        async def use():
            async with materializer.working_directory() as path:
                seen.append(path)
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run_async(use())
        assert not seen[0].exists()

    def test_concurrent_runs_get_distinct_directories(self, work_root):
        materializer = TemplateMaterializer(git=ScriptedGitRunner(), temp_root=work_root)

        async def acquire():
            async with materializer.working_directory() as path:
                await asyncio.sleep(0)
                return path

        async def both():
            return await asyncio.gather(acquire(), acquire())

        first, second = run_async(both())
        assert first != second

    def test_unusable_temp_root_raises_git_operation_error(self, tmp_path):
        materializer = TemplateMaterializer(
            git=ScriptedGitRunner(), temp_root=tmp_path / "missing"
        )

        async def use():
            async with materializer.working_directory():
                pass

        with pytest.raises(GitOperationError) as exc_info:
            run_async(use())
        assert exc_info.value.operation == "mkdtemp"


class TestMaterializeSequence:

    def test_operations_in_order(self, work_root):
        git = ScriptedGitRunner()
        materializer = TemplateMaterializer(git=git, temp_root=work_root)

        content = run_async(
            materializer.materialize("https://t@host/template", "https://t@host/new", "Aplicação")
        )

        assert git.operations == [
            "clone", "init", "init", "remote", "add", "commit", "rev-parse", "ls-files", "push",
        ]
        assert content.commit_sha == "abc123"
        assert content.branch == "master"
        assert content.file_count == 2

    def test_history_dropped_and_readme_written_before_commit(self, work_root):
        git = ScriptedGitRunner()
        observed = {}
        original_run = git.run

        async def observing_run(operation, *args, cwd=None):
            if operation == "commit":
                observed["git_dir_from_template"] = (git.workdir / ".git" / "HEAD").exists()
                observed["readme"] = (git.workdir / README_FILENAME).read_text(encoding="utf-8")
            return await original_run(operation, *args, cwd=cwd)

        git.run = observing_run
        materializer = TemplateMaterializer(git=git, temp_root=work_root)

        run_async(materializer.materialize("tpl", "target", "Infraestrutura"))

        assert observed["git_dir_from_template"] is False
        assert observed["readme"] == "Infraestrutura"

    def test_remote_is_target_and_push_targets_branch(self, work_root):
        git = ScriptedGitRunner()
        materializer = TemplateMaterializer(git=git, branch="master", temp_root=work_root)

        run_async(materializer.materialize("tpl", "https://t@host/new", "x"))

        calls = dict(git.calls)
        assert calls["remote"] == ("remote", "add", "origin", "https://t@host/new")
        assert calls["push"][-2:] == ("origin", "master")

    @pytest.mark.parametrize("failing", ["clone", "commit", "push"])
    def test_failure_removes_working_directory(self, work_root, failing):
        git = ScriptedGitRunner(fail_on=failing)
        materializer = TemplateMaterializer(git=git, temp_root=work_root)

        with pytest.raises(GitOperationError):
            run_async(materializer.materialize("tpl", "target", "x"))

        assert list(work_root.iterdir()) == []

    def test_push_failure_happens_after_commit(self, work_root):
        git = ScriptedGitRunner(fail_on="push")
        materializer = TemplateMaterializer(git=git, temp_root=work_root)

        with pytest.raises(GitOperationError, match="push"):
            run_async(materializer.materialize("tpl", "target", "x"))

        assert "commit" in git.operations


# ---------------------------------------------------------------------------
# Real git
# ---------------------------------------------------------------------------

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

GIT_IDENTITY = ["-c", "user.name=Test", "-c", "user.email=test@example.com",
                "-c", "commit.gpgsign=false"]


def _git(*args: str, cwd: Optional[Path] = None) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, encoding="utf-8"
    )
    return result.stdout


@pytest.fixture
def template_repo(tmp_path) -> Path:
    repo = tmp_path / "template"
    repo.mkdir()
    _git("init", "--quiet", cwd=repo)
    (repo / "app.py").write_text("print('hello')\n")
    _git("add", "-A", cwd=repo)
    _git(*GIT_IDENTITY, "commit", "--quiet", "-m", "first", cwd=repo)
    (repo / "azure-pipelines.yaml").write_text("trigger: [master]\n")
    (repo / ".gitignore").write_text("*.pyc\n")
    _git("add", "-A", cwd=repo)
    _git(*GIT_IDENTITY, "commit", "--quiet", "-m", "second", cwd=repo)
    return repo


@pytest.fixture
def target_repo(tmp_path) -> Path:
    repo = tmp_path / "target.git"
    _git("init", "--bare", "--quiet", str(repo))
    return repo


@requires_git
class TestMaterializeWithGit:

    def test_pushes_single_commit_with_template_content(
        self, template_repo, target_repo, work_root
    ):
        materializer = TemplateMaterializer(git=GitRunner(), temp_root=work_root)

        content = run_async(
            materializer.materialize(str(template_repo), str(target_repo), "Aplicação")
        )

        git_dir = f"--git-dir={target_repo}"
        assert _git(git_dir, "rev-list", "--count", "master").strip() == "1"
        files = set(_git(git_dir, "ls-tree", "--name-only", "master").split())
        assert files == {"README.md", "app.py", "azure-pipelines.yaml", ".gitignore"}
        assert _git(git_dir, "show", "master:README.md") == "Aplicação"
        assert _git(git_dir, "rev-parse", "master").strip() == content.commit_sha
        assert content.file_count == 4

    def test_template_remote_not_inherited(self, template_repo, target_repo, work_root):
        materializer = TemplateMaterializer(git=GitRunner(), temp_root=work_root)

        run_async(materializer.materialize(str(template_repo), str(target_repo), "x"))

        template_head = _git("rev-parse", "HEAD", cwd=template_repo).strip()
        git_dir = f"--git-dir={target_repo}"
        history = _git(git_dir, "rev-list", "master").split()
        assert template_head not in history

    def test_working_directory_removed_after_success(
        self, template_repo, target_repo, work_root
    ):
        materializer = TemplateMaterializer(git=GitRunner(), temp_root=work_root)

        run_async(materializer.materialize(str(template_repo), str(target_repo), "x"))

        assert list(work_root.iterdir()) == []

    def test_push_to_missing_remote_fails_and_cleans_up(
        self, template_repo, tmp_path, work_root
    ):
        materializer = TemplateMaterializer(git=GitRunner(), temp_root=work_root)

        with pytest.raises(GitOperationError) as exc_info:
            run_async(
                materializer.materialize(
                    str(template_repo), str(tmp_path / "does-not-exist.git"), "x"
                )
            )

        assert exc_info.value.operation == "push"
        assert list(work_root.iterdir()) == []

    def test_second_push_to_same_remote_is_rejected(
        self, template_repo, target_repo, work_root
    ):
        materializer = TemplateMaterializer(git=GitRunner(), temp_root=work_root)
        run_async(materializer.materialize(str(template_repo), str(target_repo), "first"))

        # Unrelated root commit
        with pytest.raises(GitOperationError) as exc_info:
            run_async(
                materializer.materialize(str(template_repo), str(target_repo), "second")
            )

        assert exc_info.value.operation == "push"
