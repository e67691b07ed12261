"""Service layer for the processing pipeline."""
