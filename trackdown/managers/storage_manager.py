"""
Storage manager for the trackdown index.

Owns the two JSON files the index maintains itself: the project config in
.trackdown/config.json and the index file beside the item directories.
Item documents are never touched here; see DocumentStore.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from trackdown.constants import DEFAULT_CONFIG_DIR_NAME
from trackdown.exceptions import StorageError
from trackdown.models.files import ConfigFile, IndexFile

CONFIG_FILE_NAME = "config.json"

ModelT = TypeVar("ModelT", bound=BaseModel)


class StorageManager:
    """
    Loads and saves the config and index files as validated pydantic models.

    Writes go through a temp file in the target directory followed by
    os.replace, so a reader never sees a half-written file.
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """
        Initialize the StorageManager.

        Args:
            config_dir: The project's .trackdown/ directory. Defaults to
                .trackdown/ in the current directory. Not created until
                something is saved.
        """
        self.config_dir = config_dir if config_dir else Path(DEFAULT_CONFIG_DIR_NAME)

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    def _read_model(self, file_path: Path, model: Type[ModelT], label: str) -> Optional[ModelT]:
        """Parse a JSON file into a model; None if the file is absent.

        Raises:
            StorageError: If the file can't be read, isn't JSON, or doesn't validate.
        """
        if not file_path.exists():
            return None
        try:
            raw = file_path.read_text(encoding="utf-8")
            return model.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError, OSError) as e:
            raise StorageError(f"Failed to load {label}: {e}")

    def _write_json(self, file_path: Path, payload: Any) -> None:
        """Replace a JSON file atomically.

        Raises:
            StorageError: If the directory or file can't be written.
        """
        temp_path = None
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=file_path.parent, prefix=".tmp_trackdown_", suffix=".json"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(temp_path, file_path)
        except (OSError, TypeError, ValueError) as e:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)
            raise StorageError(f"Failed to write {file_path}: {e}")

    # =========================================================================
    # Config File
    # =========================================================================

    def load_config(self) -> ConfigFile:
        """Project config; built-in defaults when config.json is absent."""
        config = self._read_model(self.config_path, ConfigFile, CONFIG_FILE_NAME)
        return config if config is not None else ConfigFile()

    def save_config(self, config: ConfigFile) -> None:
        self._write_json(self.config_path, config.model_dump(mode="json"))

    # =========================================================================
    # Index File
    # =========================================================================

    def load_index(self, file_path: Path) -> Optional[IndexFile]:
        """Persisted index, or None if there is no index file yet.

        Raises:
            StorageError: If the file exists but isn't a valid index.
        """
        return self._read_model(file_path, IndexFile, f"index {file_path.name}")

    def save_index(self, file_path: Path, index: IndexFile) -> None:
        """Write the index with its camelCase keys."""
        self._write_json(file_path, index.model_dump(mode="json", by_alias=True))
