"""Model persistence and serving."""
