"""CLI command modules for tokeneater."""
