"""autofix - safety-gated repair of local development environments."""

__version__ = "1.2.0"
