"""Entry point for running clawx as a module: python -m clawx."""

from clawx.cli.commands import app

if __name__ == "__main__":
    app()
