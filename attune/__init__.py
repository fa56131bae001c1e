"""Attune: phase workflow engine for guided therapy sessions.

Attune tracks, for each live session, which phase of a multi-phase
conversational protocol the session is in, what structured data the
phase still needs, how long the session has spent where, and which
phase comes next.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
