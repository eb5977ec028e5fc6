"""Command line interface for neutralturf."""
