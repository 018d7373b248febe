"""
Mirror Integration — Provision the mirror repository and copy commit
metadata into it.
"""

from .context import MirrorContext
from .document import document_path, render_document
from .orchestrator import CommitMirror
from .provisioner import MirrorProvisioner

__all__ = [
    "CommitMirror",
    "MirrorContext",
    "MirrorProvisioner",
    "document_path",
    "render_document",
]
