"""Command-line interface for the escrow client."""
