"""Source engine query and RCON transport."""

__version__ = "0.1.0"
