"""
Helper Utilities Module.

Small file-name and filesystem helpers shared by the intake, assembly and
storage layers.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - strip_extension: Drop the final extension from a file name
    - sanitize_fragment: Reduce text to an uppercase alphanumeric fragment
    - format_file_size: Human-readable byte counts
"""

import re
from pathlib import Path
from typing import Optional, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Raises:
        PermissionError: If directory cannot be created due to permissions.
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path, None]) -> str:
    """
    Extract the file extension from a filepath.

    Returns the extension in lowercase, including the dot, or an empty
    string if there is none.

    Example:
        >>> get_file_extension("document.PDF")
        '.pdf'
        >>> get_file_extension("noextension")
        ''
    """
    if not filepath:
        return ""
    return Path(filepath).suffix.lower()


def strip_extension(file_name: Optional[str]) -> str:
    """
    Remove the last extension from a file name.

    Example:
        >>> strip_extension("scan.2024.pdf")
        'scan.2024'
    """
    if not file_name:
        return ""
    dot = file_name.rfind('.')
    return file_name[:dot] if dot > 0 else file_name


def sanitize_fragment(
    text: Optional[str],
    max_length: int = 10,
    fallback: str = "UNKNOWN"
) -> str:
    """
    Reduce text to an uppercase ``[A-Z0-9]`` fragment.

    Args:
        text: Source text, usually a file name without extension.
        max_length: Maximum fragment length.
        fallback: Returned when nothing alphanumeric remains.

    Returns:
        Sanitized fragment.

    Example:
        >>> sanitize_fragment("acme invoice_2024-03")
        'ACMEINVOIC'
    """
    cleaned = re.sub(r'[^A-Za-z0-9]', '', text or "").upper()
    return cleaned[:max_length] if cleaned else fallback


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for log messages.

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    size = float(size_bytes)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024 or unit == 'GB':
            if unit == 'B':
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
