"""imgrel - derive and execute container image release matrices."""

__version__ = "0.3.0"
