"""Intent classification and confidence scoring."""

import re
from typing import Optional, Sequence

from .pattern_matcher import PatternMatcher, default_pattern_matcher
from .types import (
    AIActionDetection, Action, EntityType, ExtractedEntity, InputAnalysis, Intent, SafetyLevel
)


QUESTION_WORDS = re.compile(
    r'\b(why|what|how|when|where|who|which|can|could|should|would|will|may|might)\b',
    re.IGNORECASE,
)

INTENT_CONFIDENCE = {
    Intent.COMMAND: 0.9,
    Intent.DIRECT_ACTION: 0.85,
    Intent.HYBRID: 0.8,
    Intent.QUESTION: 0.6,
}

INTENT_ACTION_CONFIDENCE = {
    Intent.DIRECT_ACTION: 0.9,
    Intent.COMMAND: 0.8,
    Intent.HYBRID: 0.6,
}


class InputAnalyzer:
    """Decides what kind of turn an input is and how sure we are about it."""

    def __init__(self, pattern_matcher: Optional[PatternMatcher] = None):
        self.patterns = pattern_matcher or default_pattern_matcher

    def create_empty_analysis(self, text: str) -> InputAnalysis:
        """Analysis for blank input: a zero-confidence question with nothing to do."""
        return InputAnalysis(
            intent=Intent.QUESTION,
            confidence=0.0,
            entities=(),
            suggested_actions=(),
            requires_confirmation=False,
            original_input=text,
            action_confidence=0.0,
        )

    def analyze_slash_command(self, text: str) -> InputAnalysis:
        """Slash input is always a command; the shell parses its arguments itself."""
        return InputAnalysis(
            intent=Intent.COMMAND,
            confidence=1.0,
            entities=(),
            suggested_actions=(),
            requires_confirmation=False,
            original_input=text,
            processed_command=text,
        )

    def determine_intent(self, text: str, entities: Sequence[ExtractedEntity],
                         ai_detection: Optional[AIActionDetection] = None) -> Intent:
        """Classify a turn with an ordered rule cascade; the first rule that matches decides.

        Args:
            text: Trimmed user input
            entities: Entities extracted from the input
            ai_detection: Validated LLM detection, if one was made

        Returns:
            The Intent of the turn; QUESTION when no rule matches
        """
        if not text.strip():
            return Intent.QUESTION

        if text.startswith('/'):
            return Intent.COMMAND

        if ai_detection and ai_detection.action and ai_detection.confidence >= 0.8:
            return Intent.DIRECT_ACTION

        if self.patterns.test_pattern('direct_command', text):
            return Intent.COMMAND

        has_action = any(e.type == EntityType.ACTION for e in entities)
        has_process = any(e.type == EntityType.PROCESS for e in entities)

        if self.patterns.is_imperative(text) and has_process:
            return Intent.DIRECT_ACTION

        if has_action and has_process and not self.has_question_words(text):
            return Intent.DIRECT_ACTION

        if has_action and not has_process:
            return Intent.COMMAND

        if (self.patterns.test_pattern('why_question', text)
                or self.patterns.test_pattern('help_question', text)):
            return Intent.QUESTION

        if (self.patterns.test_pattern('performance_question', text)
                or self.patterns.test_pattern('error_question', text)):
            return Intent.HYBRID if has_action else Intent.QUESTION

        if has_action and self.has_question_words(text):
            return Intent.HYBRID

        return Intent.QUESTION

    def has_question_words(self, text: str) -> bool:
        return QUESTION_WORDS.search(text) is not None

    def calculate_confidence(self, intent: Intent, entities: Sequence[ExtractedEntity],
                             actions: Sequence[Action]) -> float:
        """Overall classification confidence.

        Starts from a per-intent base, adds a fifth of the mean entity
        confidence and 0.1 when any action was suggested, capped at 1.0.
        """
        confidence = INTENT_CONFIDENCE[intent]

        if entities:
            mean = sum(e.confidence for e in entities) / len(entities)
            confidence = min(1.0, confidence + mean * 0.2)

        if actions:
            confidence = min(1.0, confidence + 0.1)

        return round(confidence, 2)

    def calculate_action_confidence(self, text: str, intent: Intent,
                                    entities: Sequence[ExtractedEntity],
                                    actions: Sequence[Action],
                                    ai_detection: Optional[AIActionDetection] = None) -> float:
        """How sure we are that the suggested action is what the user wants.

        Args:
            text: Trimmed user input
            intent: Intent from determine_intent
            entities: Extracted entities
            actions: Suggested actions
            ai_detection: Validated LLM detection, if any

        Returns:
            0.0 without actions, otherwise a value in [0.2, 1.0]. A confident
            LLM detection is returned as is; several candidate process names
            and question words lower the heuristic score.
        """
        if not actions:
            return 0.0

        if ai_detection and ai_detection.action and ai_detection.confidence > 0.7:
            return round(ai_detection.confidence, 2)

        confidence = INTENT_ACTION_CONFIDENCE.get(intent, 0.3)

        if self.patterns.is_imperative(text):
            confidence = min(1.0, confidence + 0.1)

        process_count = sum(1 for e in entities if e.type == EntityType.PROCESS)
        if process_count == 1:
            confidence = min(1.0, confidence + 0.1)
        elif process_count > 1:
            # several candidate targets: prefer doing nothing over guessing
            confidence = max(0.4, confidence - 0.1)

        if self.has_question_words(text):
            confidence = max(0.2, confidence - 0.2)

        if len(actions) == 1 and actions[0].target:
            confidence = min(1.0, confidence + 0.1)

        return round(max(0.2, min(1.0, confidence)), 2)

    def generate_processed_command(self, intent: Intent, actions: Sequence[Action]) -> Optional[str]:
        """Slash command equivalent of a COMMAND turn, e.g. ``/restart api``."""
        if intent == Intent.COMMAND and actions:
            return actions[0].to_command()
        return None

    def needs_confirmation(self, actions: Sequence[Action]) -> bool:
        return any(action.safety != SafetyLevel.SAFE for action in actions)

