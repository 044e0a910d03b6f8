"""
Sandbox module for running generated sketches in isolated browser contexts.

Components:
- document: Build the execution page (runtime, addons, wrapped program, error trap)
- runtime: Evaluate a page in an isolated context and relay its console payloads
- harness: Drive one candidate's run and enforce its lifecycle
- channel: Status messages from sandboxes to the host
- registry: The host's table of live candidates
"""

from sketchlab.sandbox.document import ExecutionDocument, build_document, preview_markup, wrap_program, has_entry_point
from sketchlab.sandbox.channel import StatusChannel, StatusMessage, parse_status_message
from sketchlab.sandbox.registry import CandidateRegistry
from sketchlab.sandbox.runtime import BrowserRuntime, SandboxRuntime, SandboxError, SandboxTimeout
from sketchlab.sandbox.harness import SandboxHarness, run_sandboxes

__all__ = [
    # Document
    "ExecutionDocument",
    "build_document",
    "preview_markup",
    "wrap_program",
    "has_entry_point",
    # Channel
    "StatusChannel",
    "StatusMessage",
    "parse_status_message",
    # Registry
    "CandidateRegistry",
    # Runtime
    "BrowserRuntime",
    "SandboxRuntime",
    "SandboxError",
    "SandboxTimeout",
    # Harness
    "SandboxHarness",
    "run_sandboxes",
]
