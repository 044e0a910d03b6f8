"""
Execution Document - Build the isolated HTML page a candidate runs in.

The page contains:
- The p5.js runtime and a status reporter (`post`) tagged with the candidate id
- Selected library addons, in selection order
- The candidate's program in its own top-level script, wrapped in a default
  `setup` when it has no entry point
- An error trap for thrown errors, `window.onerror` and unhandled rejections

`preview_markup` nests a page inside an `allow-scripts`-only iframe for
display inside the host app.
"""

import html as html_lib
import json
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sketchlab.catalog import P5_RUNTIME_URL
from sketchlab.schemas import LibraryAddon


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_CANVAS_WIDTH = 500
DEFAULT_CANVAS_HEIGHT = 500
DEFAULT_SETTLE_MS = 100

# Console prefix marking status payloads written by the reporter
STATUS_PREFIX = "__sketch_status__"

# Global-mode functions p5 looks up on `window`
P5_HOOKS = (
    "preload", "setup", "draw", "windowResized",
    "mousePressed", "mouseReleased", "mouseClicked", "mouseMoved", "mouseDragged", "mouseWheel",
    "doubleClicked", "keyPressed", "keyReleased", "keyTyped",
    "touchStarted", "touchMoved", "touchEnded",
)

# A global-mode entry point: `function setup(` / `setup = ` / `const draw = (`
_ENTRY_POINT_PATTERN = re.compile(
    r"\bfunction\s+(?:setup|draw)\s*\(|\b(?:setup|draw)\s*=(?!=)"
)
# Instance mode: the program creates its own p5 instance
_INSTANCE_MODE_PATTERN = re.compile(r"\bnew\s+p5\s*\(")

_SCRIPT_CLOSE_PATTERN = re.compile(r"</(script)", re.IGNORECASE)

PAGE_STYLE = (
    "body{margin:0;padding:0;display:flex;justify-content:center;align-items:center;"
    "min-height:100vh;overflow:hidden;background:#f8fafc;}"
    "canvas{max-width:100%!important;height:auto!important;}"
)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ExecutionDocument:
    """A self-contained page for one candidate run."""
    candidate_id: int
    html: str
    allowed_urls: List[str] = field(default_factory=list)
    wrapped: bool = False


# =============================================================================
# PROGRAM WRAPPING
# =============================================================================

def has_entry_point(code: str) -> bool:
    """Check whether the program declares a setup/draw entry point or its own p5 instance."""
    return bool(_ENTRY_POINT_PATTERN.search(code) or _INSTANCE_MODE_PATTERN.search(code))


def wrap_program(
    code: str,
    width: int = DEFAULT_CANVAS_WIDTH,
    height: int = DEFAULT_CANVAS_HEIGHT,
) -> str:
    """
    Wrap bare drawing code inside a default `setup` with a fixed canvas size.

    Code that already declares an entry point is returned unchanged.
    """
    if has_entry_point(code):
        return code
    return f"function setup(){{createCanvas({width},{height});\n{code}\n}}"


def _escape_script(text: str) -> str:
    """Keep inline script text from closing its own <script> element."""
    return _SCRIPT_CLOSE_PATTERN.sub(r"<\\/\1", text)


def _export_hooks() -> str:
    """
    Copy top-level `const`/`let` sketch hooks onto `window`.

    Lexical declarations in a classic script are global bindings but not
    window properties, and p5's global mode only looks on `window`.
    """
    return "\n".join(
        f"if (typeof {hook} === 'function' && window.{hook} !== {hook}) window.{hook} = {hook};"
        for hook in P5_HOOKS
    )


# =============================================================================
# DOCUMENT BUILDER
# =============================================================================

def build_document(
    candidate_id: int,
    source_code: str,
    addons: Optional[Sequence[LibraryAddon]] = None,
    settle_ms: int = DEFAULT_SETTLE_MS,
    runtime_url: str = P5_RUNTIME_URL,
) -> ExecutionDocument:
    """
    Build the execution document for one candidate.

    Args:
        candidate_id: Id reported with every status message
        source_code: The candidate's program text
        addons: Library addons, injected in the given order
        settle_ms: Delay before reporting success, so early async errors surface first
        runtime_url: Location of the p5.js runtime script

    Returns:
        ExecutionDocument with the page HTML and the resource URLs it may load
    """
    addons = list(addons or [])
    program = wrap_program(source_code)
    starts_instance = bool(_INSTANCE_MODE_PATTERN.search(source_code))

    addon_tags = "\n".join(
        f'<script src="{addon.resource_locator}"></script>' for addon in addons
    )
    tagged_id = json.dumps(candidate_id)
    prefix = json.dumps(STATUS_PREFIX)
    start = "" if starts_instance else "new p5();"

    html = f"""<!DOCTYPE html><html><head>
<meta charset="UTF-8">
<script src="{runtime_url}"></script>
{addon_tags}
<style>{PAGE_STYLE}</style>
</head><body><script>
(function () {{
  var settled = false;
  var post = function (status, message) {{
    if (settled) return;
    if (status !== 'loading') settled = true;
    var payload = {{ kind: 'status', candidateId: {tagged_id}, status: status }};
    if (message) payload.message = String(message);
    if (window.parent && window.parent !== window) window.parent.postMessage(payload, '*');
    console.info({prefix} + JSON.stringify(payload));
  }};
  window.__sketchPost = post;
  window.onerror = function (message, source, line, col, error) {{
    post('error', (error && error.message) || message);
  }};
  window.addEventListener('unhandledrejection', function (event) {{
    var reason = event.reason;
    post('error', (reason && reason.message) || String(reason));
  }});
  post('loading');
}})();
</script>
<script>
{_escape_script(program)}
</script>
<script>
try {{
{_export_hooks()}
{start}
setTimeout(function () {{ window.__sketchPost('success'); }}, {int(settle_ms)});
}} catch (e) {{ window.__sketchPost('error', (e && e.message) || String(e)); }}
</script></body></html>
"""

    return ExecutionDocument(
        candidate_id=candidate_id,
        html=html,
        allowed_urls=[runtime_url] + [addon.resource_locator for addon in addons],
        wrapped=program != source_code,
    )


# =============================================================================
# HOST PREVIEW
# =============================================================================

PREVIEW_SANDBOX = "allow-scripts"


def preview_markup(document: ExecutionDocument, height: int = 500) -> str:
    """
    Embed an execution document for display inside the host page.

    The page goes into `srcdoc` of an iframe sandboxed with `allow-scripts`
    only, so the program runs in an opaque origin and cannot reach the
    parent page.

    Args:
        document: The page to display
        height: Frame height in pixels

    Returns:
        HTML markup holding the single sandboxed iframe
    """
    srcdoc = html_lib.escape(document.html, quote=True)
    return (
        f'<iframe sandbox="{PREVIEW_SANDBOX}" srcdoc="{srcdoc}" '
        f'title="sketch-{document.candidate_id}" '
        f'style="border:0;width:100%;height:{int(height)}px;display:block;"></iframe>'
    )
