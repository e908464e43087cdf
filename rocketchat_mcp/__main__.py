#!/usr/bin/env python3
"""Entry point for running as module."""
from rocketchat_mcp.cli.commands import cli

if __name__ == "__main__":
    cli()
