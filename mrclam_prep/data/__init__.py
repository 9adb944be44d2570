"""Data model, store and dataset reader."""
