"""Model training and evaluation for accident risk regression."""
