"""Core utilities shared across vitehost: logging and errors."""
