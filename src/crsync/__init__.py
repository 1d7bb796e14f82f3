"""crsync: keeps change request descriptions in sync with local plan/report state."""

__version__ = "0.3.0"

__all__ = ["__version__"]
