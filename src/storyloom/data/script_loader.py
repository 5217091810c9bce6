"""Low-level helpers for reading story scripts from disk."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .errors import DataLoadError
from .paths import get_stories_path

logger = logging.getLogger(__name__)

SCRIPT_SUFFIX = ".ink"


def load_script(path: Path | str) -> str:
    """Read a UTF-8 script and raise DataLoadError on failure."""
    script_path = Path(path)
    try:
        text = script_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise DataLoadError(f"Story script not found: {script_path}") from exc
    except UnicodeDecodeError as exc:
        raise DataLoadError(f"Story script is not valid UTF-8: {script_path}") from exc
    except OSError as exc:
        raise DataLoadError(f"Unable to read story script: {script_path}") from exc
    logger.info("Loaded story script %s", script_path)
    return text


def list_scripts(base_path: Path | str | None = None) -> List[Path]:
    """Return the bundled story scripts, sorted by name."""
    directory = get_stories_path(base_path)
    if not directory.is_dir():
        return []
    return sorted(directory.glob(f"*{SCRIPT_SUFFIX}"))
