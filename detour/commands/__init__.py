"""Detour settings-UI command interface.

Public API:
    parse_command   — raw payload → Command | None
    CommandHandler  — executes a parsed Command, returns the response dict
"""
from detour.commands.handler import CommandHandler
from detour.commands.messages import Command, parse_command

__all__ = ["Command", "CommandHandler", "parse_command"]
