"""Shared infrastructure: configuration, logging, paths, files, validation."""
