import io
import zipfile

from sketchlab.catalog import LIBRARIES, P5_RUNTIME_URL
from sketchlab.export import bundle_filename, export_candidate
from sketchlab.extract import extract_code, fence
from sketchlab.schemas import Candidate
from sketchlab.utils import make_zip_bytes, safe_name


def _read(archive: bytes):
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return {name: zf.read(name).decode("utf-8") for name in zf.namelist()}


def test_export_layout():
    candidate = Candidate(source_code="function setup() {\n  createCanvas(500, 500);\n}", raw_response_text="")

    files = _read(export_candidate(candidate, [LIBRARIES[1], LIBRARIES[0]]))

    assert sorted(files) == ["index.html", "sketch.js", "style.css"]
    index = files["index.html"]
    runtime = index.index(P5_RUNTIME_URL)
    play = index.index(LIBRARIES[1].resource_locator)
    sound = index.index(LIBRARIES[0].resource_locator)
    assert runtime < play < sound < index.index('<script src="sketch.js">')
    assert '<link rel="stylesheet" href="style.css">' in index
    assert "canvas{" in files["style.css"]


def test_exported_source_is_unchanged_and_re_extracts():
    source = "// bare drawing code\nbackground(30);\nfill(255, 0, 0);\ncircle(width / 2, height / 2, 120);\n"
    candidate = Candidate(source_code=source, raw_response_text="")

    exported = _read(export_candidate(candidate))["sketch.js"]

    assert exported == source
    assert extract_code(fence(exported)) == source.strip()


def test_bundle_filename():
    candidate = Candidate(source_code="", raw_response_text="")

    assert bundle_filename(candidate) == f"sketch-{candidate.id}.zip"
    assert bundle_filename(candidate, "Neon rain, please!") == f"neon_rain_please-{candidate.id}.zip"


def test_make_zip_bytes_normalizes_paths():
    files = _read(make_zip_bytes({"\\assets\\a.txt": "a", "/b.txt": "b"}))

    assert files == {"assets/a.txt": "a", "b.txt": "b"}


def test_safe_name():
    assert safe_name("  Hello   World ") == "hello_world"
    assert safe_name("???") == "sketch"
    assert len(safe_name("x" * 200)) == 50
