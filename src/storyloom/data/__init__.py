"""Data layer utilities for loading story scripts."""

from .errors import DataError, DataLoadError
from .paths import get_repo_root, get_stories_path
from .script_loader import list_scripts, load_script

__all__ = [
    "DataError",
    "DataLoadError",
    "get_repo_root",
    "get_stories_path",
    "list_scripts",
    "load_script",
]
