"""Notes directory access."""

from pathlib import Path
from typing import List, Union
import logging

from .exceptions import UnreadableNoteError

logger = logging.getLogger(__name__)


class Vault:
    """Read and write notes in a local directory.

    All note paths are POSIX-style paths relative to the vault root, as they
    appear in wikilinks (e.g., "refs/Wright2013.md"). The empty string names
    the root folder.

    Example:
        ```python
        vault = Vault("~/notes")

        if vault.exists("refs/Wright2013.md"):
            text = vault.read("refs/Wright2013.md")

        for path in vault.list_children("refs"):
            print(path)
        ```

    Args:
        root: Vault directory
        create_if_missing: Create the directory if it doesn't exist

    Raises:
        ValueError: If root is missing (and not created) or not a directory
    """

    def __init__(self, root: Union[str, Path], create_if_missing: bool = False):
        self.root = Path(root).expanduser().resolve()

        if not self.root.exists():
            if create_if_missing:
                self.root.mkdir(parents=True, exist_ok=True)
            else:
                raise ValueError(f"Vault directory does not exist: {self.root}")

        if not self.root.is_dir():
            raise ValueError(f"Vault path is not a directory: {self.root}")

    def _resolve_path(self, note_path: str) -> Path:
        """Resolve a note path inside the vault.

        Raises:
            ValueError: If the path resolves outside the vault
        """
        path = (self.root / note_path).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Invalid note path: '{note_path}' resolves outside the vault")
        return path

    def exists(self, note_path: str) -> bool:
        """Check whether a note (file) exists."""
        try:
            return self._resolve_path(note_path).is_file()
        except (ValueError, OSError):
            return False

    def is_folder(self, folder: str) -> bool:
        try:
            return self._resolve_path(folder).is_dir()
        except (ValueError, OSError):
            return False

    def create_folder(self, folder: str) -> None:
        self._resolve_path(folder).mkdir(parents=True, exist_ok=True)
        logger.info(f"Created folder: {folder}")

    def read(self, note_path: str) -> str:
        """Read the text of a note.

        Raises:
            UnreadableNoteError: If the path is not a readable file in the vault
        """
        try:
            path = self._resolve_path(note_path)
            if not path.is_file():
                raise UnreadableNoteError(f"Could not read {note_path}: not a valid file")
            return path.read_text(encoding='utf-8')
        except (ValueError, OSError, UnicodeDecodeError) as e:
            raise UnreadableNoteError(f"Could not read {note_path}: {e}") from e

    def write(self, note_path: str, text: str) -> None:
        """Write the text of a note, creating parent folders as needed.

        Raises:
            ValueError: If the path resolves outside the vault
            OSError: If the write fails
        """
        path = self._resolve_path(note_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
        logger.debug(f"Wrote {note_path}")

    def list_children(self, folder: str = '') -> List[str]:
        """List files directly inside a folder, sorted by name.

        Returns:
            Note paths relative to the vault root

        Raises:
            NotADirectoryError: If the folder does not exist
        """
        path = self._resolve_path(folder)
        if not path.is_dir():
            raise NotADirectoryError(f"Folder not found: {folder or '/'}")

        return sorted(
            child.relative_to(self.root).as_posix()
            for child in path.iterdir()
            if child.is_file()
        )

    def resolve_link(self, target: str) -> str:
        """Map a wikilink target to a note path.

        Tries the target as given, then with ``.md`` appended.

        Returns:
            Note path (which may not exist if neither form does)
        """
        target = target.strip()
        if self.exists(target) or target.endswith('.md'):
            return target
        if self.exists(f'{target}.md'):
            return f'{target}.md'
        return target
