"""Task Time Machine: historical reconstruction of a project's task board."""

__version__ = "0.1.0"
