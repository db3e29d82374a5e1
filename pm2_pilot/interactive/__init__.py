"""Interactive mode components for PM2 Pilot."""

from .readline_handler import ReadlineHandler
from .command_parser import CommandParser, SlashCommand
from .ui_manager import UIManager, MessageType
from .shell import PilotShell

__all__ = [
    'ReadlineHandler',
    'CommandParser',
    'SlashCommand',
    'UIManager',
    'MessageType',
    'PilotShell',
]
