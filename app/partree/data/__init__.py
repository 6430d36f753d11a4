"""Bundled data files for partree."""
