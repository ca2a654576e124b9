"""
User configuration management for refnotes.

Stores the vault location, reference folder, citation style, callout label
and the per-note citation counters used to mint block identifiers.
"""

from pathlib import Path
from typing import Optional, Dict, Any
import copy
import json
import logging

from .config import DEFAULT_EXPORT_FILENAME, Settings, get_config_dir, normalize_folder
from .formatter import CitationStyle
from .notes import DEFAULT_CALLOUT_TYPE, CounterStore

logger = logging.getLogger(__name__)


class UserConfig:
    """Manage user configuration settings."""

    DEFAULT_CONFIG = {
        'vault_directory': '.',
        'reference_folder': '',  # vault root
        'bibliography_format': CitationStyle.LATEX.value,
        'citation_callout_type': DEFAULT_CALLOUT_TYPE,
        'export_filename': DEFAULT_EXPORT_FILENAME,
        'citation_counters': {},
    }

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize user configuration.

        Args:
            config_file: Path to config file. If None, uses default location.
        """
        if config_file is None:
            config_dir = get_config_dir('refnotes')
            config_file = config_dir / 'user_config.json'

        self.config_file = Path(config_file)
        self.config: Dict[str, Any] = {}

        self._load_config()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Known keys are validated and normalized first.

        Args:
            key: Configuration key
            value: Value to set

        Raises:
            ValueError: If the value is invalid for the key
        """
        if key == 'reference_folder':
            value = normalize_folder(value)
        elif key == 'bibliography_format':
            value = CitationStyle.from_value(value).value
        elif key == 'citation_callout_type':
            value = (value or '').strip() or DEFAULT_CALLOUT_TYPE
        elif key == 'citation_counters' and not isinstance(value, dict):
            raise ValueError("citation_counters must be a mapping of note to number")

        self.config[key] = value
        self._save_config()

    def get_vault_directory(self) -> Path:
        return Path(self.get('vault_directory', '.')).expanduser()

    def get_reference_folder(self) -> str:
        return normalize_folder(self.get('reference_folder', ''))

    def get_bibliography_format(self) -> CitationStyle:
        """Get the configured citation style.

        Falls back to LaTeX if the stored value is not a known style.
        """
        value = self.get('bibliography_format', self.DEFAULT_CONFIG['bibliography_format'])
        try:
            return CitationStyle.from_value(value)
        except ValueError as e:
            logger.warning(f"{e}; using latex")
            return CitationStyle.LATEX

    def get_callout_type(self) -> str:
        return self.get('citation_callout_type') or DEFAULT_CALLOUT_TYPE

    def settings(self) -> Settings:
        """Get the settings consumed by the note workflows."""
        return Settings(
            reference_folder=self.get_reference_folder(),
            bibliography_format=self.get_bibliography_format(),
            citation_callout_type=self.get_callout_type(),
            export_filename=self.get('export_filename') or DEFAULT_EXPORT_FILENAME,
        )

    def counter_store(self) -> CounterStore:
        """Get a counter store persisted into this configuration file."""
        counters = self.config.setdefault('citation_counters', {})
        return CounterStore(counters, persist=lambda state: self.set('citation_counters', state))

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        self._save_config()

    def show(self) -> Dict[str, Any]:
        """Get all configuration settings.

        Returns:
            Dictionary of all settings
        """
        return copy.deepcopy(self.config)

    def _load_config(self) -> None:
        """Load configuration from file or create with defaults."""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    self.config = json.load(f)

                # Merge with defaults for any missing keys
                for key, value in self.DEFAULT_CONFIG.items():
                    if key not in self.config:
                        self.config[key] = copy.deepcopy(value)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Could not load config from {self.config_file}: {e}")
                self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        else:
            self.config = copy.deepcopy(self.DEFAULT_CONFIG)
            self._save_config()

    def _save_config(self) -> None:
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self.config, f, indent=2, ensure_ascii=False)


def get_user_config(config_file: Optional[Path] = None) -> UserConfig:
    """Get the user configuration.

    Args:
        config_file: Optional config file path (default location if None)

    Returns:
        UserConfig instance
    """
    return UserConfig(config_file)
