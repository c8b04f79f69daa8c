"""Command line interface for vitehost."""
