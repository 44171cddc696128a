"""Configuration management for litmeta.

This module provides a clean interface for reading and writing
both repository-local and global configuration files.
"""

import os
import configparser
from pathlib import Path
from typing import Optional

from .errors import UserError


class Config:
    """
    Manages configuration files.

    Configuration is stored in INI format, similar to Git:
    - Global config: ~/.litconfig
    - Repository config: .lit/config

    Repository config takes precedence over global config.
    Environment variables take highest precedence.
    """

    GLOBAL_CONFIG_PATH = Path.home() / '.litconfig'

    def __init__(self, repo_config_path: Optional[Path] = None):
        self.repo_config_path = repo_config_path
        self._global_config = None
        self._repo_config = None

    @property
    def global_config(self) -> configparser.ConfigParser:
        """Load and return global configuration."""
        if self._global_config is None:
            self._global_config = configparser.ConfigParser()
            if self.GLOBAL_CONFIG_PATH.exists():
                self._global_config.read(self.GLOBAL_CONFIG_PATH)
        return self._global_config

    @property
    def repo_config(self) -> Optional[configparser.ConfigParser]:
        """Load and return repository configuration."""
        if self._repo_config is None and self.repo_config_path:
            self._repo_config = configparser.ConfigParser()
            if self.repo_config_path.exists():
                self._repo_config.read(self.repo_config_path)
        return self._repo_config

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """
        Get a configuration value.

        Priority order (highest to lowest):
        1. Environment variables (LIT_<SECTION>_<KEY>)
        2. Repository config
        3. Global config
        4. Fallback value
        """
        env_value = os.environ.get(f"LIT_{section.upper()}_{key.upper()}")
        if env_value is not None:
            return env_value

        if self.repo_config and self.repo_config.has_option(section, key):
            return self.repo_config.get(section, key)

        if self.global_config.has_option(section, key):
            return self.global_config.get(section, key)

        return fallback

    def get_int(self, section: str, key: str, fallback: int) -> int:
        """Get an integer configuration value."""
        value = self.get(section, key)
        if value is None:
            return fallback
        try:
            return int(value)
        except ValueError:
            raise UserError(f"Bad integer value for {section}.{key}: '{value}'")

    def get_user_identity(self) -> tuple:
        """
        Get user name and email for commits.

        Returns:
            Tuple of (name, email), either may be None
        """
        return self.get('user', 'name'), self.get('user', 'email')

    def get_author(self) -> str:
        """
        Author string (``Name <email>``) for commits created by litmeta.

        ``LIT_AUTHOR_NAME`` / ``LIT_AUTHOR_EMAIL`` override the configured
        identity.

        Raises:
            UserError: If no identity is configured
        """
        name, email = self.get_user_identity()
        name = os.environ.get('LIT_AUTHOR_NAME') or name
        email = os.environ.get('LIT_AUTHOR_EMAIL') or email
        if not name or not email:
            raise UserError(
                "Could not determine author information; "
                "set user.name and user.email in .lit/config or ~/.litconfig"
            )
        return f"{name} <{email}>"


def get_config(repo=None) -> Config:
    """
    Get a Config instance.

    Args:
        repo: Repository instance, or None for global-only config
    """
    if repo:
        return Config(repo.config_file)
    return Config()
