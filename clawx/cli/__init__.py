"""CLI module for clawx."""
