"""Command line interface for specgraph."""
