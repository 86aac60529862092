"""Contract e-signature status gateway."""

__version__ = "0.1.0"
