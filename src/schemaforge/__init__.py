"""Command line entry point for SchemaForge."""
