"""Service layer for FractalTask: engine, validation, stores, suggestions."""
