"""Multi-turn conversation state: history, derived context and pending actions."""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Union

from ..llm_client import ConversationMessage, LLMClient
from ..router.types import ALL_TARGET, Action, EntityType, InputAnalysis, Intent, SafetyLevel
from .executor import ExecutionResult


MAX_AI_HISTORY = 5
RECENT_PROCESS_TURNS = 5
PREVIOUS_COMMAND_TURNS = 3
RECENT_ACTIVITY_WINDOW = timedelta(minutes=5)
BATCH_WORDS = frozenset([ALL_TARGET, 'everything'])

PRONOUNS = frozenset([
    'it', 'them', 'that', 'this',          # English
    'le', 'la', 'les', 'lui', 'eux',       # French
    'lo', 'los', 'las', 'eso', 'esa',      # Spanish
])

NAME_PATTERN = re.compile(r'\b([a-zA-Z0-9\-_]+(?:\.[a-zA-Z0-9]+)?)\b')
FILLER_WORDS = frozenset([
    'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with',
    'my', 'your', 'his', 'her', 'its', 'our', 'their', 'all', 'some', 'any',
])

PROCESS_NAME_PROMPT = """PM2 process name extractor. Analyze user input for process names.

INPUT: "{text}"

RULES:
1. Include technical identifiers, app names and service names
2. Include hyphenated names (api-server, worker-queue) and dotted names (app.js)
3. Exclude common words, articles, pronouns and generic terms (server, app, process)
4. Work in any language and tolerate typos
5. Minimum 3 characters, no standalone numbers

EXAMPLES:
- "restart api-server" -> ["api-server"]
- "show logs for my-app.js" -> ["my-app.js"]
- "start the application" -> []
- "redémarre mon api-server" -> ["api-server"]

JSON RESPONSE (array only):
["process_name_1", "process_name_2"]"""


@dataclass(frozen=True)
class ConversationTurn:
    """One user input with its analysis and outcome."""
    sequence: int
    input: str
    analysis: InputAnalysis
    result: Optional[ExecutionResult] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ConversationContext:
    """View derived from recent turns."""
    last_mentioned_process: Optional[str] = None
    recent_processes: List[str] = field(default_factory=list)
    previous_commands: List[str] = field(default_factory=list)
    last_response: Optional[str] = None


@dataclass
class PendingAction:
    """An action waiting for the user to confirm it."""
    id: str
    label: str
    command: str
    analysis: InputAnalysis
    safety: SafetyLevel
    action: Optional[Action] = None


def extract_names_fallback(text: str) -> List[str]:
    """Regex-only process name candidates."""
    return [
        name for name in NAME_PATTERN.findall(text)
        if len(name) > 2 and not name.isdigit() and name.lower() not in FILLER_WORDS
    ]


def is_concrete_process(name: Optional[str]) -> bool:
    """False for empty names and the batch words that mean every process."""
    return bool(name) and name.lower() not in BATCH_WORDS


def _process_from_turn(turn: ConversationTurn) -> Optional[str]:
    for action in turn.analysis.suggested_actions:
        if is_concrete_process(action.target):
            return action.target

    for entity in turn.analysis.entities:
        if entity.type == EntityType.PROCESS and is_concrete_process(entity.value):
            return entity.value

    # Slash commands carry no entities: "/restart api"
    parts = turn.input.strip().split()
    if parts and parts[0].startswith('/') and len(parts) > 1 and is_concrete_process(parts[1]):
        return parts[1]
    return None


class ConversationManager:
    """Owns the turn history and the pending-confirmation set of one session.

    History is bounded to ``max_history`` turns. Every turn gets a sequence
    number that keeps increasing even after old turns are dropped.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, max_history: int = 10):
        self.llm_client = llm_client
        self.max_history = max_history
        self.logger = logging.getLogger(__name__)
        self._history: List[ConversationTurn] = []
        self._pending: List[PendingAction] = []
        self._next_sequence = 1

    @property
    def history(self) -> List[ConversationTurn]:
        return list(self._history)

    def add_turn(self, text: str, analysis: InputAnalysis,
                 result: Optional[ExecutionResult] = None) -> ConversationTurn:
        turn = ConversationTurn(sequence=self._next_sequence, input=text, analysis=analysis, result=result)
        self._next_sequence += 1
        self._history.append(turn)
        if len(self._history) > self.max_history:
            self._history = self._history[-self.max_history:]
        return turn

    def clear_history(self) -> None:
        self._history = []

    def get_context(self) -> ConversationContext:
        last_mentioned = None
        for turn in reversed(self._history):
            last_mentioned = _process_from_turn(turn)
            if last_mentioned:
                break

        recent: List[str] = []
        for turn in self._history[-RECENT_PROCESS_TURNS:]:
            name = _process_from_turn(turn)
            if name and name not in recent:
                recent.append(name)

        last_response = None
        if self._history and self._history[-1].result:
            last_response = self._history[-1].result.message

        return ConversationContext(
            last_mentioned_process=last_mentioned,
            recent_processes=recent,
            previous_commands=[turn.input for turn in self._history[-PREVIOUS_COMMAND_TURNS:]],
            last_response=last_response,
        )

    # Pending actions

    def set_pending_actions(self, actions: Sequence[PendingAction]) -> None:
        self._pending = list(actions)

    def get_pending_actions(self) -> List[PendingAction]:
        return list(self._pending)

    def clear_pending_actions(self) -> None:
        self._pending = []

    def has_pending_actions(self) -> bool:
        return bool(self._pending)

    def is_numbered_selection(self, text: str) -> bool:
        stripped = text.strip()
        # isdigit() also accepts superscripts, which int() rejects
        if not stripped.isdecimal():
            return False
        return 1 <= int(stripped) <= len(self._pending)

    def get_action_by_number(self, number: int) -> Optional[PendingAction]:
        if number < 1 or number > len(self._pending):
            return None
        return self._pending[number - 1]

    @staticmethod
    def pending_from_actions(actions: Sequence[Action], analysis: InputAnalysis) -> List[PendingAction]:
        """Number actions "1", "2", ... for a confirmation menu."""
        return [
            PendingAction(
                id=str(index),
                label=f"{action.description[:1].upper()}{action.description[1:]} ({action.safety.value})",
                command=action.to_command(),
                analysis=analysis,
                safety=action.safety,
                action=action,
            )
            for index, action in enumerate(actions, start=1)
        ]

    # Pronouns

    def resolve_pronoun(self, word: str, context: ConversationContext) -> Optional[str]:
        if word.lower() in PRONOUNS:
            return context.last_mentioned_process
        return None

    def expand_pronouns(self, text: str) -> str:
        """Replace pronouns with the last mentioned process, if there is one."""
        context = self.get_context()
        if not context.last_mentioned_process:
            return text

        def replace(match: 're.Match') -> str:
            return self.resolve_pronoun(match.group(0), context) or match.group(0)

        return re.sub(r"(?<![\w-])[^\W\d_]+(?![\w-])", replace, text)

    # AI transcript and summaries

    def get_messages_for_ai(self) -> List[ConversationMessage]:
        """User/assistant transcript of recent information requests only."""
        messages = []
        for turn in self._history[-MAX_AI_HISTORY:]:
            if turn.analysis.intent not in (Intent.QUESTION, Intent.HYBRID):
                continue
            messages.append(ConversationMessage(role='user', content=turn.input, timestamp=turn.timestamp))
            if turn.result and turn.result.message:
                messages.append(ConversationMessage(
                    role='assistant', content=turn.result.message, timestamp=turn.timestamp
                ))
        return messages

    def generate_context_prompt(self) -> str:
        if not self._history:
            return ''
        lines = []
        for turn in self._history[-PREVIOUS_COMMAND_TURNS:]:
            outcome = ''
            if turn.result:
                outcome = f" → {'Success' if turn.result.success else 'Failed'}"
            lines.append(f'User: "{turn.input}"{outcome}')
        return "Recent conversation:\n" + "\n".join(lines)

    def has_similar_recent_command(self, analysis: InputAnalysis) -> bool:
        target = _first_target(analysis)
        return any(
            turn.analysis.intent == analysis.intent and _first_target(turn.analysis) == target
            for turn in self._history[-PREVIOUS_COMMAND_TURNS:]
        )

    def get_statistics(self) -> Dict[str, Union[int, float]]:
        total = len(self._history)
        successful = sum(1 for turn in self._history if turn.result and turn.result.success)
        cutoff = datetime.now() - RECENT_ACTIVITY_WINDOW
        recent = sum(1 for turn in self._history if turn.timestamp > cutoff)
        return {
            'total_commands': total,
            'success_rate': successful / total if total else 0.0,
            'recent_activity': recent,
        }

    async def extract_process_names(self, text: str) -> List[str]:
        """Ask the LLM for process names, falling back to the regex extractor."""
        if self.llm_client is None or not self.llm_client.is_configured():
            return extract_names_fallback(text)

        try:
            response = await self.llm_client.query(PROCESS_NAME_PROMPT.format(text=text))
            cleaned = re.sub(r'^```json\s*|\s*```$', '', response.strip())
            parsed = json.loads(cleaned)
        except Exception as e:
            self.logger.debug(f"AI process name extraction failed: {e}")
            return extract_names_fallback(text)

        if not isinstance(parsed, list):
            return []
        return [name for name in parsed if isinstance(name, str) and name]


def _first_target(analysis: InputAnalysis) -> Optional[str]:
    for action in analysis.suggested_actions:
        if action.target:
            return action.target
    return None
