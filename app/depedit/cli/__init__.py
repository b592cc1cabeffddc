"""Command-line interface for depedit."""
