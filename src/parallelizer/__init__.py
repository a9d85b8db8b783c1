"""Poll many long-running HTTP jobs concurrently until each reports completion."""

__version__ = "0.1.0"
