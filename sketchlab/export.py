"""
Export a candidate as a standalone p5.js project (index.html, style.css, sketch.js).
"""

from typing import Optional, Sequence

from sketchlab.catalog import P5_RUNTIME_URL
from sketchlab.schemas import Candidate, LibraryAddon
from sketchlab.utils import make_zip_bytes, safe_name


EXPORT_STYLE = (
    "body{margin:0;padding:0;overflow:hidden;background:#000;display:flex;"
    "justify-content:center;align-items:center;min-height:100vh;}"
    "canvas{display:block;box-shadow:0 0 50px rgba(0,0,0,0.5);border-radius:12px;}"
)


def render_index_html(addons: Optional[Sequence[LibraryAddon]] = None) -> str:
    """Page that loads the runtime, the addons in order, then sketch.js."""
    tags = [f'<script src="{P5_RUNTIME_URL}"></script>']
    tags.extend(f'<script src="{addon.resource_locator}"></script>' for addon in addons or [])
    head = "\n".join(tags)
    return (
        "<!DOCTYPE html><html><head>\n"
        '<meta charset="UTF-8">\n'
        f"{head}\n"
        '<link rel="stylesheet" href="style.css">\n'
        "</head><body>\n"
        '<script src="sketch.js"></script>\n'
        "</body></html>\n"
    )


def export_candidate(candidate: Candidate, addons: Optional[Sequence[LibraryAddon]] = None) -> bytes:
    """
    Build the downloadable project archive for a candidate.

    The candidate's source code is written to sketch.js unchanged.

    Args:
        candidate: The candidate to export
        addons: Selected library addons, in selection order

    Returns:
        ZIP archive bytes
    """
    return make_zip_bytes({
        "index.html": render_index_html(addons),
        "style.css": EXPORT_STYLE,
        "sketch.js": candidate.source_code,
    })


def bundle_filename(candidate: Candidate, title: str = "") -> str:
    """File name for the exported archive, e.g. `sketch-1712345678901.zip`."""
    stem = safe_name(title) if title.strip() else "sketch"
    return f"{stem}-{candidate.id}.zip"
