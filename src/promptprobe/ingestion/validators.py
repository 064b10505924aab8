from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional, Union

import structlog

from promptprobe.core.config import Settings, get_settings
from promptprobe.core.exceptions import InputNotFoundError, UnsupportedFileTypeError

__all__: list[str] = [
    "is_supported",
    "validate_file",
    "validate_directory",
    "iter_supported_files",
]

logger = structlog.get_logger(__name__)


def _extension(path: Union[str, Path]) -> str:
    _, extension = os.path.splitext(str(path))
    return extension[1:].lower()  # Remove the leading dot


def is_supported(path: Union[str, Path], settings: Optional[Settings] = None) -> bool:
    """Return True if *path* carries an extension from the allow-list."""
    settings = settings or get_settings()
    return settings.is_extension_allowed(_extension(path))


def validate_file(
    path: Union[str, Path], *, settings: Optional[Settings] = None
) -> Path:
    """
    Validate a single input file before it is handed to the engine.

    Args:
        path: File to analyse.
        settings: Optional Settings instance (uses global if not provided)

    Returns:
        The path as a :class:`~pathlib.Path`.

    Raises:
        InputNotFoundError: The path does not exist or is not a regular file.
        UnsupportedFileTypeError: The extension is not in the allow-list.
    """
    settings = settings or get_settings()
    file_path = Path(path)

    if not file_path.is_file():
        logger.warning("input_file_missing", path=str(file_path))
        raise InputNotFoundError(file_path, kind="file")

    if not is_supported(file_path, settings):
        logger.debug(
            "input_file_unsupported",
            path=str(file_path),
            extension=_extension(file_path),
        )
        raise UnsupportedFileTypeError(file_path)

    return file_path


def validate_directory(path: Union[str, Path]) -> Path:
    """Ensure *path* is an existing directory."""
    dir_path = Path(path)
    if not dir_path.is_dir():
        logger.warning("input_directory_missing", path=str(dir_path))
        raise InputNotFoundError(dir_path, kind="directory")
    return dir_path


def iter_supported_files(
    directory: Union[str, Path],
    *,
    recursive: bool = False,
    settings: Optional[Settings] = None,
) -> Iterator[Path]:
    """Yield supported regular files under *directory* in sorted order.

    Unsupported files are skipped, not reported as errors.
    """
    settings = settings or get_settings()
    dir_path = validate_directory(directory)
    pattern = "**/*" if recursive else "*"
    candidates: List[Path] = sorted(p for p in dir_path.glob(pattern) if p.is_file())

    skipped = 0
    for candidate in candidates:
        if is_supported(candidate, settings):
            yield candidate
        else:
            skipped += 1

    if skipped:
        logger.debug("unsupported_files_skipped", directory=str(dir_path), count=skipped)
