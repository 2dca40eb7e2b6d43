"""halte — local-first wellness data store with permissioned AI generation."""

__version__ = "0.1.0"
