"""Command line interface for skillkeeper."""
