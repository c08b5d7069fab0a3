"""FractalTask - nested task trees with cascading completion."""

__version__ = "0.1.0"
