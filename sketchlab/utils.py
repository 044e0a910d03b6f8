"""
Utility functions for SketchLab.
"""

import io
import re
import zipfile
from typing import Dict, Union


def make_zip_bytes(files: Dict[str, Union[str, bytes]]) -> bytes:
    """
    Create an in-memory ZIP archive from a dictionary of files.

    Args:
        files: Dictionary mapping file paths to file contents

    Returns:
        Bytes of the ZIP archive
    """
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path, content in files.items():
            # Archive members always use forward slashes and no leading slash
            normalized_path = path.replace("\\", "/").lstrip("/")
            zf.writestr(normalized_path, content)

    return buffer.getvalue()


def safe_name(text: str, default: str = "sketch") -> str:
    """
    Turn free text into a safe lowercase file name stem.

    Args:
        text: Any user text (a prompt, a title)
        default: Returned when nothing usable is left

    Returns:
        At most 50 characters of word characters, hyphens and underscores
    """
    name = text[:50].strip()
    name = re.sub(r'\s+', '_', name)
    name = re.sub(r'[^\w\-]', '', name)
    name = name.strip('_')

    return name.lower() or default
