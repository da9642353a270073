"""
PathResolver for the trackdown index.

Maps the project root and config onto concrete directories.
"""

from pathlib import Path
from typing import Dict

from trackdown.constants import DEFAULT_CONFIG_DIR_NAME
from trackdown.exceptions import ProjectRootError
from trackdown.models.base import INDEXED_TYPES, ItemType
from trackdown.models.files import ConfigFile


class PathResolver:
    """
    Resolves every on-disk location the index touches.

    Layout:
        <root>/.trackdown/config.json
        <root>/<tasks_directory>/.trackdown-index
        <root>/<tasks_directory>/<epics|issues|tasks|prs>/*.md
    """

    def __init__(self, project_root: Path, config: ConfigFile) -> None:
        """
        Initialize PathResolver.

        Args:
            project_root: Directory that holds the project.
            config: Loaded project configuration.
        """
        self.project_root = Path(project_root)
        self.config = config

    @staticmethod
    def config_dir_for(project_root: Path) -> Path:
        """Location of the .trackdown/ directory for a root."""
        return Path(project_root) / DEFAULT_CONFIG_DIR_NAME

    @property
    def tasks_root(self) -> Path:
        return self.project_root / self.config.tasks_directory

    @property
    def index_path(self) -> Path:
        return self.tasks_root / self.config.index_file_name

    def type_dir(self, item_type: ItemType) -> Path:
        """Directory holding documents of one item type.

        Raises:
            ValueError: For types without their own directory.
        """
        structure = self.config.structure
        dirs = {
            ItemType.EPIC: structure.epics_dir,
            ItemType.ISSUE: structure.issues_dir,
            ItemType.TASK: structure.tasks_dir,
            ItemType.PR: structure.prs_dir,
        }
        if item_type not in dirs:
            raise ValueError(f"Item type '{item_type.value}' has no directory")
        return self.tasks_root / dirs[item_type]

    def type_dirs(self) -> Dict[ItemType, Path]:
        return {item_type: self.type_dir(item_type) for item_type in INDEXED_TYPES}

    def ensure_project_root(self) -> None:
        """Check that the indexed root exists and is a readable directory.

        Raises:
            ProjectRootError: If it isn't.
        """
        if not self.project_root.exists():
            raise ProjectRootError(f"Project root does not exist: {self.project_root}")
        if not self.project_root.is_dir():
            raise ProjectRootError(f"Project root is not a directory: {self.project_root}")
