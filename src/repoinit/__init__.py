"""repoinit — provision a content repository from a declarative script."""

__version__ = "0.4.0"
