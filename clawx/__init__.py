"""clawx - desktop shell core for the OpenClaw gateway."""

__version__ = "0.1.0"
__logo__ = "🦞"
