"""Readline integration: persistent history and tab completion of commands and process names."""

import logging
import os
from typing import Iterable, List, Optional
from pathlib import Path

try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


class ReadlineHandler:
    """Line editing for the shell.

    Completion candidates are plain words (``/status``, ``api-server``);
    the shell refreshes them when it learns the current process names.
    """

    def __init__(self, history_file: Optional[str] = None, history_size: int = 1000):
        self.has_readline = HAS_READLINE
        self.history_size = history_size
        self.history_file = history_file or str(Path.home() / '.pm2_pilot_history')
        self.completions: List[str] = []
        self.logger = logging.getLogger(__name__)

        if self.has_readline:
            self._setup_readline()

    def _setup_readline(self) -> None:
        readline.set_history_length(self.history_size)
        readline.set_completer(self.complete)
        # "/" and "-" belong to completable words
        readline.set_completer_delims(' \t\n')
        readline.parse_and_bind('tab: complete')

        if os.environ.get('EDITOR', '').endswith('vi'):
            readline.parse_and_bind('set editing-mode vi')

        try:
            if os.path.exists(self.history_file):
                readline.read_history_file(self.history_file)
        except OSError as e:
            self.logger.debug(f"Could not load history from {self.history_file}: {e}")

    def set_completions(self, words: Iterable[str]) -> None:
        self.completions = sorted(set(words))

    def complete(self, text: str, state: int) -> Optional[str]:
        """readline completer: the state-th candidate starting with text."""
        matches = [word for word in self.completions if word.startswith(text)]
        return matches[state] if state < len(matches) else None

    def add_history(self, command: str) -> None:
        if not self.has_readline or not command.strip():
            return
        readline.add_history(command)

    def save_history(self) -> None:
        if not self.has_readline:
            return

        try:
            directory = os.path.dirname(self.history_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            readline.write_history_file(self.history_file)
        except OSError as e:
            self.logger.debug(f"Could not save history to {self.history_file}: {e}")

    def input_with_prompt(self, prompt: str) -> str:
        return input(prompt)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.save_history()
