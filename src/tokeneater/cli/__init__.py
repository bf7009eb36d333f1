"""Command line interface for tokeneater."""
