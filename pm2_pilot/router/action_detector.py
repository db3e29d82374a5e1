"""Turn entities or an LLM suggestion into candidate actions."""

import json
import logging
import math
import re
from typing import Any, List, Optional

from ..llm_client import LLMClient
from .types import (
    ALL_TARGET, AIActionDetection, Action, ActionType, EntityType, ExtractedEntity, SafetyLevel
)


MUTATING_ACTIONS = (ActionType.RESTART, ActionType.STOP, ActionType.START)

BATCH_PATTERN = re.compile(r'\b(?:all|everything)\b', re.IGNORECASE)
CODE_FENCE_PATTERN = re.compile(r'```json|```')

DETECTION_PROMPT = """You are a PM2 action detector. Analyze the user input and determine if it contains a process management command in ANY language.

INPUT: "{text}"

TASK: Extract action information if present, respond with JSON only.

VALID ACTIONS: restart, stop, start, status, logs, metrics, info
VALID TARGETS: a concrete process name, "all", or null

EXAMPLES:
- "reload my instances" -> {{"action": "restart", "target": "all", "confidence": 0.9, "detectedLanguage": "English"}}
- "restart my-app" -> {{"action": "restart", "target": "my-app", "confidence": 0.95, "detectedLanguage": "English"}}
- "arrête tout" -> {{"action": "stop", "target": "all", "confidence": 0.9, "detectedLanguage": "French"}}
- "how are things?" -> {{"action": null, "target": null, "confidence": 0, "detectedLanguage": "English"}}

OUTPUT ONLY valid JSON in this format:
{{"action": "...", "target": "...", "confidence": 0.0, "detectedLanguage": "..."}}"""


def get_safety_level(action_type: ActionType) -> SafetyLevel:
    """Per-type safety tier."""
    if action_type == ActionType.STOP:
        return SafetyLevel.DANGEROUS
    if action_type in (ActionType.RESTART, ActionType.START):
        return SafetyLevel.CAUTION
    return SafetyLevel.SAFE


def action_safety(action_type: ActionType, target: Optional[str]) -> SafetyLevel:
    """Safety of an action on a target; mutating every process is dangerous."""
    if target == ALL_TARGET and action_type in MUTATING_ACTIONS:
        return SafetyLevel.DANGEROUS
    return get_safety_level(action_type)


def build_action(action_type: ActionType, target: Optional[str] = None) -> Action:
    if target == ALL_TARGET:
        description = f"{action_type.value} all processes"
    elif target:
        description = f"{action_type.value} {target}"
    else:
        description = action_type.value
    return Action(
        type=action_type,
        target=target,
        safety=action_safety(action_type, target),
        description=description,
    )


class ActionDetector:
    """Builds Actions from extracted entities, optionally asking the LLM first."""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client
        self.logger = logging.getLogger(__name__)

    def extract_actions(self, text: str, entities: List[ExtractedEntity],
                        ai_detection: Optional[AIActionDetection] = None) -> List[Action]:
        if ai_detection and ai_detection.action and ai_detection.confidence > 0.5:
            return [build_action(ai_detection.action, ai_detection.target)]

        action_entities = [e for e in entities if e.type == EntityType.ACTION]
        process_entities = [e for e in entities if e.type == EntityType.PROCESS]

        if BATCH_PATTERN.search(text):
            if not action_entities:
                return []
            return [build_action(ActionType(action_entities[0].value), ALL_TARGET)]

        actions = []
        for action_entity in action_entities:
            action_type = ActionType(action_entity.value)
            if process_entities:
                for process_entity in process_entities:
                    actions.append(build_action(action_type, process_entity.value))
            else:
                actions.append(build_action(action_type))
        return actions

    def get_safety_level(self, action_type: ActionType) -> SafetyLevel:
        return get_safety_level(action_type)

    async def detect_actions_with_ai(self, text: str) -> AIActionDetection:
        """Ask the LLM for an action; never raises."""
        if self.llm_client is None:
            return AIActionDetection.null(text)

        try:
            response = await self.llm_client.query(DETECTION_PROMPT.format(text=text))
            cleaned = CODE_FENCE_PATTERN.sub('', response.strip()).strip()
            parsed = json.loads(cleaned)
        except Exception as e:
            self.logger.debug(f"AI action detection failed: {e}")
            return AIActionDetection.null(text)

        return self.normalize_detection(parsed, text)

    def normalize_detection(self, parsed: Any, original_text: str) -> AIActionDetection:
        """Validate untrusted LLM output into an AIActionDetection."""
        if not isinstance(parsed, dict):
            self.logger.debug(f"Discarding non-object detection: {parsed!r}")
            return AIActionDetection.null(original_text)

        raw_action = parsed.get('action')
        raw_target = parsed.get('target')
        raw_confidence = parsed.get('confidence')
        raw_language = parsed.get('detectedLanguage')

        action = None
        if isinstance(raw_action, str):
            try:
                action = ActionType(raw_action.strip().lower())
            except ValueError:
                self.logger.debug(f"Discarding unknown action: {raw_action}")

        target = raw_target.strip() if isinstance(raw_target, str) and raw_target.strip() else None
        if target and target.lower() in (ALL_TARGET, 'everything'):
            target = ALL_TARGET

        # bool is an int subclass; "true" is not a confidence
        if (isinstance(raw_confidence, (int, float)) and not isinstance(raw_confidence, bool)
                and math.isfinite(raw_confidence)):
            confidence = max(0.0, min(1.0, float(raw_confidence)))
        else:
            confidence = 0.0

        language = raw_language if isinstance(raw_language, str) else 'Unknown'

        return AIActionDetection(
            action=action,
            target=target,
            confidence=confidence,
            detected_language=language,
            original_text=original_text,
        )
