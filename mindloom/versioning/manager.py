"""
Git version management for Mindloom.

This module commits saved mindmap outlines to a Git repository in the mindmaps
folder, keeping an audit trail of generated and combined mindmaps.
"""

import logging
from pathlib import Path
from typing import List, Optional, Any
from datetime import datetime

try:
    import git  # type: ignore
    from git import Repo, InvalidGitRepositoryError  # type: ignore
    GIT_AVAILABLE = True
except ImportError:
    git = None  # type: ignore
    Repo = None  # type: ignore
    InvalidGitRepositoryError = Exception  # type: ignore
    GIT_AVAILABLE = False


GITIGNORE_CONTENT = """# Mindloom Git ignore file
# Temporary files
*.tmp
*.temp
.DS_Store
Thumbs.db

# Metadata database
*.db
*.db.wal
"""


class VersionManager:
    """
    Manages Git operations for the mindmaps folder.
    """

    def __init__(self, repo_path: str = "AI Mindmaps"):
        """
        Initialize the version manager.

        Args:
            repo_path: Path to the Git repository (default: the mindmaps folder)
        """
        self.repo_path = Path(repo_path)
        self.repo: Optional[Any] = None

        if not GIT_AVAILABLE:
            raise ImportError("GitPython package is required for versioning. Install with: pip install gitpython")

        logging.info(f"Initialized VersionManager for: {self.repo_path}")

    def initialize_repository(self) -> bool:
        """
        Initialize a Git repository if it doesn't exist.

        Returns:
            True if repository was initialized or already exists, False on error
        """
        try:
            if self._is_git_repository():
                logging.info("Git repository already exists")
                self.repo = Repo(self.repo_path)
                return True

            self.repo_path.mkdir(parents=True, exist_ok=True)
            self.repo = Repo.init(self.repo_path)

            gitignore_path = self.repo_path / ".gitignore"
            if not gitignore_path.exists():
                gitignore_path.write_text(GITIGNORE_CONTENT, encoding="utf-8")

                self.repo.index.add([".gitignore"])
                self.repo.index.commit("Initial commit: Add .gitignore", **self._actors())

            logging.info("Git repository initialized successfully")
            return True

        except (git.GitError, OSError) as e:
            logging.error(f"Failed to initialize Git repository: {e}")
            return False

    def _is_git_repository(self) -> bool:
        """Check if the path is already a Git repository."""
        try:
            if not self.repo_path.exists():
                return False
            Repo(self.repo_path)
            return True
        except InvalidGitRepositoryError:
            return False

    def _actors(self, author_name: str = "Mindloom AI", author_email: str = "ai@mindloom.local") -> dict:
        actor = git.Actor(author_name, author_email)
        return {"author": actor, "committer": actor}

    def _relative_paths(self, file_paths: List[str]) -> List[str]:
        rel_paths = []
        for file_path in file_paths:
            rel_path = Path(file_path)
            if rel_path.is_absolute():
                rel_path = rel_path.resolve().relative_to(self.repo_path.resolve())
            rel_paths.append(rel_path.as_posix())
        return rel_paths

    def stage_files(self, file_paths: List[str]) -> bool:
        """
        Stage files for commit.

        Args:
            file_paths: Paths to stage, absolute or relative to the repo root

        Returns:
            True if all files were staged successfully, False otherwise
        """
        if not self.repo:
            logging.error("Repository not initialized")
            return False

        try:
            rel_paths = self._relative_paths(file_paths)
            self.repo.index.add(rel_paths)
            logging.info(f"Staged {len(rel_paths)} files")
            return True

        except (git.GitError, OSError, ValueError) as e:
            logging.error(f"Failed to stage files: {e}")
            return False

    def stage_removals(self, file_paths: List[str]) -> bool:
        """Stage deleted files for commit."""
        if not self.repo:
            logging.error("Repository not initialized")
            return False

        try:
            self.repo.index.remove(self._relative_paths(file_paths))
            return True
        except (git.GitError, OSError, ValueError) as e:
            logging.error(f"Failed to stage removals: {e}")
            return False

    def commit_changes(self, message: str) -> bool:
        """
        Commit staged changes with a descriptive message.

        Args:
            message: Commit message

        Returns:
            True if commit was successful (or nothing to commit), False otherwise
        """
        if not self.repo:
            logging.error("Repository not initialized")
            return False

        try:
            if not self.repo.index.diff("HEAD"):
                logging.info("No changes to commit")
                return True

            commit = self.repo.index.commit(message, **self._actors())

            logging.info(f"Created commit: {commit.hexsha[:8]} - {message.splitlines()[0]}")
            return True

        except (git.GitError, ValueError) as e:
            logging.error(f"Failed to commit changes: {e}")
            return False

    def commit_mindmap(self, file_paths: List[str], title: str, action: str = "save") -> bool:
        """
        Stage the files of one mindmap and commit them.

        Args:
            file_paths: Outline files written for the mindmap
            title: Mindmap title, used in the commit message
            action: save, combine or delete

        Returns:
            True if the commit was created (or nothing changed)
        """
        if not self.repo and not self.initialize_repository():
            return False

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        message = f"""AI: {action.title()} {title}

Updated by Mindloom on {timestamp}"""

        staged = self.stage_removals(file_paths) if action == "delete" else self.stage_files(file_paths)
        if staged:
            return self.commit_changes(message)
        return False

    def get_commit_history(self, limit: int = 10) -> List[dict]:
        """
        Get the commit history for the repository.

        Args:
            limit: Maximum number of commits to return

        Returns:
            List of commit information dictionaries
        """
        if not self.repo:
            logging.error("Repository not initialized")
            return []

        commits = []
        for commit in self.repo.iter_commits(max_count=limit):
            commits.append({
                'hash': commit.hexsha,
                'short_hash': commit.hexsha[:8],
                'message': commit.message.strip(),
                'author': str(commit.author),
                'date': commit.committed_datetime.isoformat()
            })

        return commits
