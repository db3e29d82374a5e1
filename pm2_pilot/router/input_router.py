"""Entry point that turns raw user text into an InputAnalysis."""

import logging
from typing import Optional

from ..llm_client import LLMClient
from .action_detector import ActionDetector
from .entity_extractor import EntityExtractor
from .input_analyzer import InputAnalyzer
from .pattern_matcher import PatternMatcher, default_pattern_matcher
from .types import AIActionDetection, InputAnalysis


class AIInputRouter:
    """Orchestrates entity extraction, intent and action detection.

    The router holds no per-call state, so one instance can serve any number
    of independent inputs. When an LLM client is configured it is asked for an
    action first; any failure there falls back to the heuristics silently.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None,
                 pattern_matcher: Optional[PatternMatcher] = None,
                 entity_extractor: Optional[EntityExtractor] = None,
                 action_detector: Optional[ActionDetector] = None,
                 input_analyzer: Optional[InputAnalyzer] = None):
        self.llm_client = llm_client
        self.pattern_matcher = pattern_matcher or default_pattern_matcher
        self.entity_extractor = entity_extractor or EntityExtractor()
        self.action_detector = action_detector or ActionDetector(llm_client)
        self.input_analyzer = input_analyzer or InputAnalyzer(self.pattern_matcher)
        self.logger = logging.getLogger(__name__)

    async def analyze(self, text: str) -> InputAnalysis:
        """Analyze one line of user input.

        Args:
            text: Raw input as typed

        Returns:
            InputAnalysis. Never raises: LLM failures fall back to the
            heuristic pipeline, and blank input yields an empty analysis.
        """
        trimmed = text.strip()

        if not trimmed:
            return self.input_analyzer.create_empty_analysis(text)

        if trimmed.startswith('/'):
            return self.input_analyzer.analyze_slash_command(trimmed)

        ai_detection: Optional[AIActionDetection] = None
        if self.llm_client is not None and self.llm_client.is_configured():
            try:
                ai_detection = await self.action_detector.detect_actions_with_ai(trimmed)
            except Exception as e:
                self.logger.debug(f"AI action detection failed, using heuristics: {e}")

        entities = self.entity_extractor.extract_entities(trimmed, ai_detection)
        intent = self.input_analyzer.determine_intent(trimmed, entities, ai_detection)
        actions = self.action_detector.extract_actions(trimmed, entities, ai_detection)
        confidence = self.input_analyzer.calculate_confidence(intent, entities, actions)
        action_confidence = self.input_analyzer.calculate_action_confidence(
            trimmed, intent, entities, actions, ai_detection
        )

        return InputAnalysis(
            intent=intent,
            confidence=confidence,
            entities=tuple(entities),
            suggested_actions=tuple(actions),
            requires_confirmation=self.input_analyzer.needs_confirmation(actions),
            original_input=text,
            processed_command=self.input_analyzer.generate_processed_command(intent, actions),
            action_confidence=action_confidence,
        )
