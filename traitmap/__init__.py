"""Data fusion and view state for a spatial single-cell trait viewer."""
