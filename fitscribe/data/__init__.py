"""Bundled data resources."""
