"""
Static catalogs: the p5.js runtime, optional library addons and reference links.
"""

import re
from typing import Dict, Iterable, List

from sketchlab.schemas import LibraryAddon


P5_RUNTIME_URL = "https://cdnjs.cloudflare.com/ajax/libs/p5.js/1.4.0/p5.js"

LIBRARIES: List[LibraryAddon] = [
    LibraryAddon(
        id="p5.sound",
        display_name="Sound",
        resource_locator="https://cdnjs.cloudflare.com/ajax/libs/p5.js/1.4.0/addons/p5.sound.min.js",
    ),
    LibraryAddon(
        id="p5.play",
        display_name="Play v3",
        resource_locator="https://cdn.jsdelivr.net/npm/p5.play@3.1.0/dist/p5.play.js",
    ),
    LibraryAddon(
        id="p5.ascii",
        display_name="ASCII",
        resource_locator="https://cdn.jsdelivr.net/npm/p5.ascii@0.1.0/dist/p5.ascii.min.js",
    ),
]

P5_DOCS_MAP: Dict[str, str] = {
    "setup": "https://p5js.org/reference/#/p5/setup",
    "draw": "https://p5js.org/reference/#/p5/draw",
    "createCanvas": "https://p5js.org/reference/#/p5/createCanvas",
    "background": "https://p5js.org/reference/#/p5/background",
    "fill": "https://p5js.org/reference/#/p5/fill",
    "stroke": "https://p5js.org/reference/#/p5/stroke",
    "noStroke": "https://p5js.org/reference/#/p5/noStroke",
    "noFill": "https://p5js.org/reference/#/p5/noFill",
    "rect": "https://p5js.org/reference/#/p5/rect",
    "ellipse": "https://p5js.org/reference/#/p5/ellipse",
    "line": "https://p5js.org/reference/#/p5/line",
    "triangle": "https://p5js.org/reference/#/p5/triangle",
    "random": "https://p5js.org/reference/#/p5/random",
    "noise": "https://p5js.org/reference/#/p5/noise",
    "translate": "https://p5js.org/reference/#/p5/translate",
    "rotate": "https://p5js.org/reference/#/p5/rotate",
    "scale": "https://p5js.org/reference/#/p5/scale",
    "push": "https://p5js.org/reference/#/p5/push",
    "pop": "https://p5js.org/reference/#/p5/pop",
    "map": "https://p5js.org/reference/#/p5/map",
    "dist": "https://p5js.org/reference/#/p5/dist",
    "lerp": "https://p5js.org/reference/#/p5/lerp",
    "colorMode": "https://p5js.org/reference/#/p5/colorMode",
    "beginShape": "https://p5js.org/reference/#/p5/beginShape",
    "endShape": "https://p5js.org/reference/#/p5/endShape",
    "vertex": "https://p5js.org/reference/#/p5/vertex",
    "filter": "https://p5js.org/reference/#/p5/filter",
    "image": "https://p5js.org/reference/#/p5/image",
}


def get_library(library_id: str) -> LibraryAddon:
    """Look up an addon by id."""
    for lib in LIBRARIES:
        if lib.id == library_id:
            return lib
    raise KeyError(f"Unknown library addon: {library_id}")


def select_libraries(library_ids: Iterable[str]) -> List[LibraryAddon]:
    """Resolve addon ids in selection order, skipping unknown and repeated ids."""
    selected = []
    seen = set()
    for library_id in library_ids:
        if library_id in seen:
            continue
        seen.add(library_id)
        try:
            selected.append(get_library(library_id))
        except KeyError:
            continue
    return selected


def find_doc_links(*texts: str) -> List[Dict[str, str]]:
    """
    Find p5.js reference pages for functions mentioned in the given texts.

    Returns:
        List of {"name", "url"} in catalog order
    """
    found = []
    for name, url in P5_DOCS_MAP.items():
        pattern = re.compile(rf"\b{re.escape(name)}\b", re.IGNORECASE)
        if any(text and pattern.search(text) for text in texts):
            found.append({"name": name, "url": url})
    return found
