"""Configuration management for Controller Cleaner.

Loads environment variables and provides centralized config access.
"""
import os
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

from .analyzer.policy import AnnotationEffect, AnnotationPolicy, ClassMode, FieldMode

__version__ = "1.0.0"

# Sentinel comment marking a file for scoped cleanup
MARKER_TEXT = "//Controller Cleaner"

# Upper bound on fixpoint passes per cleanup run
MAX_PASSES = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def _parse_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize config by loading .env file.

        Args:
            env_path: Explicit .env location (default: ./.env)
        """
        if env_path is None:
            env_path = Path.cwd() / ".env"
        load_dotenv(env_path)

        self._validate()

    def _validate(self):
        """Validate environment values eagerly so bad settings fail at startup.

        Raises:
            ValueError: If a mode or flag has an unrecognized value
        """
        self.field_mode
        self.class_mode
        self.backup_enabled
        self.mark_after_removal
        self.controller_name_fallback

    @property
    def field_mode(self) -> FieldMode:
        """Get unused-field policy.

        Returns:
            FieldMode from CLEANER_FIELD_MODE (default: final-private)

        Raises:
            ValueError: If the mode string is unknown
        """
        raw = os.getenv("CLEANER_FIELD_MODE", FieldMode.FINAL_PRIVATE.value)
        try:
            return FieldMode(raw.strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in FieldMode)
            raise ValueError(f"CLEANER_FIELD_MODE must be one of: {choices} (got '{raw}')")

    @property
    def class_mode(self) -> ClassMode:
        """Get unused-class policy.

        Returns:
            ClassMode from CLEANER_CLASS_MODE (default: empty)

        Raises:
            ValueError: If the mode string is unknown
        """
        raw = os.getenv("CLEANER_CLASS_MODE", ClassMode.EMPTY.value)
        try:
            return ClassMode(raw.strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in ClassMode)
            raise ValueError(f"CLEANER_CLASS_MODE must be one of: {choices} (got '{raw}')")

    @property
    def trash_path(self) -> str:
        """Get backup directory, relative to the analyzed project.

        Returns:
            Path to .cleaner_trash directory
        """
        return os.getenv("CLEANER_TRASH_PATH", ".cleaner_trash")

    @property
    def backup_enabled(self) -> bool:
        return _parse_bool("CLEANER_BACKUP", True)

    @property
    def mark_after_removal(self) -> bool:
        """Whether a deprecated-controller run marks the files it touched."""
        return _parse_bool("CLEANER_MARK_AFTER_REMOVAL", True)

    @property
    def controller_name_fallback(self) -> bool:
        """Whether '*Controller*' class names count when nothing is annotated."""
        return _parse_bool("CLEANER_CONTROLLER_NAME_FALLBACK", True)

    def annotation_policy(self) -> AnnotationPolicy:
        """Build the annotation policy table, extended from the environment.

        Returns:
            AnnotationPolicy with default rules plus CLEANER_*_ANNOTATIONS
        """
        policy = AnnotationPolicy()
        policy = policy.with_rules(_parse_list("CLEANER_CONTROLLER_ANNOTATIONS"), AnnotationEffect.CONTROLLER)
        policy = policy.with_rules(_parse_list("CLEANER_DEPRECATED_ANNOTATIONS"), AnnotationEffect.DEPRECATED)
        policy = policy.with_rules(_parse_list("CLEANER_PRESERVE_ANNOTATIONS"), AnnotationEffect.PRESERVE)
        return policy


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
