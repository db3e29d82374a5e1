"""Named regular expressions for recognizing command and question forms."""

import re
from typing import Dict, Optional, Pattern


_PROCESS = r'([a-zA-Z0-9\-_]+)'

COMMAND_PATTERNS = [
    # Slash and bare-word commands
    ('slash_command', r'^/\w+'),
    ('direct_command', r'^(status|list|ps|restart|stop|start|logs|metrics|health|help|exit|quit)\s*$'),

    # Process-specific actions
    ('restart_process', r'(?:restart|reboot|reload)\s+' + _PROCESS),
    ('stop_process', r'(?:stop|kill|terminate)\s+' + _PROCESS),
    ('start_process', r'(?:start|launch|run)\s+' + _PROCESS),
    ('logs_process', r'(?:logs?|log)\s+(?:for\s+)?' + _PROCESS),
    ('status_process', r'(?:status|state|info)\s+(?:of\s+)?' + _PROCESS),

    # Batch operations
    ('restart_all', r'(?:restart|reboot|reload)\s+(?:all|everything)'),
    ('stop_all', r'(?:stop|kill|terminate)\s+(?:all|everything)'),
    ('start_all', r'(?:start|launch|run)\s+(?:all|everything)'),

    # Imperatives
    ('imperative_restart', r'^(?:restart|reboot|reload|refresh)\s+'),
    ('imperative_stop', r'^(?:stop|kill|terminate|shutdown)\s+'),
    ('imperative_start', r'^(?:start|launch|run|begin)\s+'),
    ('imperative_show', r'^(?:show|display|list|check)\s+'),

    # Questions
    ('why_question', r'(?:why|what|how|when)\s+(?:is|was|did|does|can|will)'),
    ('performance_question', r'(?:slow|fast|memory|cpu|performance|usage|resource)'),
    ('error_question', r'(?:error|crash|fail|problem|issue|broken|wrong)'),
    ('help_question', r'(?:help|how\s+to|what\s+(?:is|are)|explain|show\s+me)'),
]

IMPERATIVE_PATTERNS = ('imperative_restart', 'imperative_stop', 'imperative_start', 'imperative_show')


class PatternMatcher:
    """Lookup and test facade over a fixed registry of compiled patterns."""

    def __init__(self):
        self._patterns: Dict[str, Pattern] = {
            name: re.compile(regex, re.IGNORECASE) for name, regex in COMMAND_PATTERNS
        }

    def get_pattern(self, name: str) -> Optional[Pattern]:
        return self._patterns.get(name)

    def test_pattern(self, name: str, text: str) -> bool:
        pattern = self._patterns.get(name)
        if pattern is None:
            return False
        return pattern.search(text) is not None

    def get_command_patterns(self) -> Dict[str, Pattern]:
        """Return a copy of the registry; callers may mutate it freely."""
        return dict(self._patterns)

    def is_imperative(self, text: str) -> bool:
        return any(self.test_pattern(name, text) for name in IMPERATIVE_PATTERNS)


# Shared by every component that tests patterns
default_pattern_matcher = PatternMatcher()
