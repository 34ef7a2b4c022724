"""Tests for WorktreeService"""
from pathlib import Path

import pytest

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.constants import IGNORE_FILE_MARKER
from git_worktree_keeper.exceptions import (
    BranchExistsError,
    GitOperationError,
    InvalidIdentifierError,
    NotAWorktreeError,
    WorktreeStateError,
)
from git_worktree_keeper.services.git.worktrees import (
    WorktreeService,
    parse_worktree_porcelain,
    worktree_marker,
)


@pytest.fixture
def service(git_repo, config):
    return WorktreeService(git_repo.working_dir, config)


class TestParseWorktreePorcelain:
    """Test parsing of git worktree list --porcelain output."""

    def test_parses_blocks(self, temp_dir):
        main = temp_dir / "main"
        main.mkdir()
        output = (
            f"worktree {main}\n"
            "HEAD 1111111111111111111111111111111111111111\n"
            "branch refs/heads/main\n"
            "\n"
            "worktree /nonexistent/feature\n"
            "HEAD 2222222222222222222222222222222222222222\n"
            "branch refs/heads/vibe-ws/feature\n"
            "locked reason here\n"
            "\n"
            "worktree /nonexistent/detached\n"
            "HEAD 3333333333333333333333333333333333333333\n"
            "detached\n"
            "prunable gitdir file points to non-existent location\n"
        )

        records = parse_worktree_porcelain(output)

        assert [r.branch for r in records] == ["main", "vibe-ws/feature", ""]
        assert records[0].is_main
        assert not records[0].is_orphaned
        assert records[0].short_head == "1111111"

        assert not records[1].is_main
        assert records[1].is_locked
        assert records[1].is_orphaned
        assert records[1].age == 0.0

        assert records[2].is_detached
        assert records[2].is_prunable

    def test_parses_bare_entry(self):
        output = "worktree /nonexistent/repo.git\nbare\n"
        records = parse_worktree_porcelain(output)
        assert len(records) == 1
        assert records[0].is_bare
        assert records[0].is_main

    def test_empty_output(self):
        assert parse_worktree_porcelain("") == []


class TestCreateWorktree:
    """Test worktree creation."""

    def test_create_then_list(self, service, git_repo):
        record = service.create_worktree("feat-x")

        assert record.branch == "vibe-ws/feat-x"
        assert record.path.exists()
        assert record.path.name.startswith("feat-x__")
        assert record.head == git_repo.head.commit.hexsha

        matching = [r for r in service.list_worktrees() if r.branch == "vibe-ws/feat-x"]
        assert len(matching) == 1
        assert matching[0].path.resolve() == record.path.resolve()

    def test_create_sanitizes_task_id(self, service):
        record = service.create_worktree("Fix: login bug!")
        assert record.branch == "vibe-ws/Fix-login-bug"

    def test_create_nested_task_id(self, service):
        record = service.create_worktree("feat/ui")
        assert record.branch == "vibe-ws/feat/ui"
        assert record.path.parent.name == "feat"

    def test_create_from_base_branch(self, service, git_repo, commit_file):
        git_repo.git.branch("develop")
        commit_file(git_repo.working_dir, "dev.txt", "dev\n")
        develop_head = git_repo.git.rev_parse("develop")

        record = service.create_worktree("from-develop", base_branch="develop")
        assert record.head == develop_head
        assert not (record.path / "dev.txt").exists()

    def test_create_custom_path(self, service, temp_dir):
        custom = temp_dir / "elsewhere"
        record = service.create_worktree("custom", custom_path=custom)
        assert record.path.resolve() == custom.resolve()
        assert (custom / "README.md").exists()

    def test_existing_branch_without_force(self, service):
        service.create_worktree("dup")
        with pytest.raises(BranchExistsError) as exc_info:
            service.create_worktree("dup")
        assert exc_info.value.target == "vibe-ws/dup"
        assert isinstance(exc_info.value, WorktreeStateError)

    def test_existing_branch_with_force(self, service, commit_file):
        first = service.create_worktree("dup")
        commit_file(first.path, "work.txt", "work\n")

        second = service.create_worktree("dup", force=True)

        assert not first.path.exists() or first.path.resolve() == second.path.resolve()
        assert not (second.path / "work.txt").exists()
        assert [r.branch for r in service.list_worktrees()].count("vibe-ws/dup") == 1

    def test_invalid_task_id(self, service):
        with pytest.raises(InvalidIdentifierError):
            service.create_worktree("!!!")

    def test_unknown_base_branch(self, service):
        with pytest.raises(GitOperationError) as exc_info:
            service.create_worktree("orphan", base_branch="does-not-exist")
        assert exc_info.value.operation == "worktree add"


class TestIgnoreFile:
    """Test ignore file management."""

    def test_ignore_entry_added_once(self, service, git_repo):
        service.create_worktree("one")
        service.create_worktree("two")

        content = (Path(git_repo.working_dir) / ".gitignore").read_text()
        assert content.count(IGNORE_FILE_MARKER) == 1
        assert content.splitlines().count(".worktrees/") == 1

    def test_existing_content_preserved(self, service, git_repo):
        ignore = Path(git_repo.working_dir) / ".gitignore"
        ignore.write_text("*.pyc")

        assert service.update_ignore_file() is True
        assert service.update_ignore_file() is False

        lines = ignore.read_text().splitlines()
        assert lines == ["*.pyc", IGNORE_FILE_MARKER, ".worktrees/"]

    def test_skipped_for_external_base_dir(self, git_repo, temp_dir):
        config = WorktreeConfig(base_dir=str(temp_dir / "external"), use_github=False)
        service = WorktreeService(git_repo.working_dir, config)

        service.create_worktree("outside")

        assert not (Path(git_repo.working_dir) / ".gitignore").exists()
        assert (temp_dir / "external").is_dir()

    def test_auto_gitignore_disabled(self, git_repo):
        config = WorktreeConfig(auto_gitignore=False, use_github=False)
        service = WorktreeService(git_repo.working_dir, config)
        service.create_worktree("quiet")
        assert not (Path(git_repo.working_dir) / ".gitignore").exists()


class TestRemoveWorktree:
    """Test worktree removal."""

    def test_remove_by_branch(self, service):
        record = service.create_worktree("gone")
        service.remove_worktree("vibe-ws/gone")

        assert not record.path.exists()
        assert service.branch_exists("vibe-ws/gone")

    def test_remove_by_path_and_delete_branch(self, service):
        record = service.create_worktree("gone")
        service.remove_worktree(str(record.path), delete_branch=True)

        assert not record.path.exists()
        assert not service.branch_exists("vibe-ws/gone")

    def test_remove_dirty_requires_force(self, service):
        record = service.create_worktree("dirty")
        (record.path / "scratch.txt").write_text("unsaved\n")

        with pytest.raises(GitOperationError):
            service.remove_worktree("vibe-ws/dirty")
        assert record.path.exists()

        service.remove_worktree("vibe-ws/dirty", force=True)
        assert not record.path.exists()

    def test_remove_unknown_target(self, service):
        with pytest.raises(NotAWorktreeError):
            service.remove_worktree("vibe-ws/never-created")

    def test_refuses_main_worktree(self, service, git_repo):
        with pytest.raises(WorktreeStateError):
            service.remove_worktree(git_repo.working_dir)
        with pytest.raises(WorktreeStateError):
            service.remove_worktree("main")


class TestWorktreeQueries:
    """Test lookup helpers."""

    def test_main_worktree_listed_first(self, service, git_repo):
        service.create_worktree("second")
        records = service.list_worktrees()
        assert records[0].is_main
        assert records[0].path.resolve() == Path(git_repo.working_dir).resolve()

    def test_find_worktree(self, service):
        record = service.create_worktree("findme")
        assert service.find_worktree("vibe-ws/findme").path.resolve() == record.path.resolve()
        assert service.find_worktree(record.path).branch == "vibe-ws/findme"
        assert service.find_worktree("nothing") is None

    def test_prune_orphaned_metadata(self, service):
        import shutil

        record = service.create_worktree("vanishing")
        shutil.rmtree(record.path)

        orphan = service.find_worktree("vibe-ws/vanishing")
        assert orphan.is_orphaned

        service.prune_worktrees()
        assert service.find_worktree("vibe-ws/vanishing") is None

    def test_get_repo_root(self, service, git_repo):
        assert service.get_repo_root().resolve() == Path(git_repo.working_dir).resolve()

    def test_age_from_directory(self, service, age_directory):
        record = service.create_worktree("aged")
        age_directory(record.path, 48)
        aged = service.find_worktree("vibe-ws/aged")
        assert aged.age_hours >= 47

    def test_age_survives_new_files(self, service, age_directory):
        record = service.create_worktree("edited")
        age_directory(record.path, 24 * 30)
        (record.path / "notes.txt").write_text("saved\n")
        (record.path / "notes.txt").rename(record.path / "notes.md")

        edited = service.find_worktree("vibe-ws/edited")
        assert edited.age_hours >= 24 * 30 - 1

    def test_worktree_marker(self, service, git_repo):
        record = service.create_worktree("marked")
        assert worktree_marker(record.path).name == "commondir"
        assert worktree_marker(Path(git_repo.working_dir)) == Path(git_repo.working_dir)
