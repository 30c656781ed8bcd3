"""Phoenix: single-shot declarative provisioner for a Fedora workstation.

Core design goals:
- Every stage is check -> diff -> act, so a failed run is fixed by re-running
- User-space work runs with the real user's credentials, never as root
- Secrets are read once and never written back
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
