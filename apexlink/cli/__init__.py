"""Command-line interface for ApexLink."""
