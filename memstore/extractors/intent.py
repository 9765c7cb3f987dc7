"""Intent extractor: labels human messages with a privileged `system.intent` key."""

import logging
from typing import Iterable

from memstore.generation.generator import BaseGenerator, GenerationConfig
from memstore.memory.schemas import MessageEvent, MessageMetadata
from .base import BaseExtractor

logger = logging.getLogger(__name__)

INTENT_KEY = "system.intent"
HUMAN_ROLES = ("human", "user")

INTENT_PROMPT = """Classify the intent of the message below in one short lowercase phrase
(for example: question, request, greeting, feedback, statement). Answer with the phrase only.

Message:
{content}

Intent:"""


class IntentExtractor(BaseExtractor):
    """
    Writes the detected intent of each human message as system metadata.

    The write is privileged: `system.*` keys are closed to ordinary callers.
    """

    name = "intent"

    def __init__(self, generator: BaseGenerator, roles: Iterable[str] = HUMAN_ROLES):
        self.generator = generator
        self.roles = {r.lower() for r in roles}

    def extract(self, store, event: MessageEvent) -> None:
        entries = []
        config = GenerationConfig(temperature=0.0, max_new_tokens=8)
        for message in event.messages:
            if message.role.lower() not in self.roles or not message.content.strip():
                continue
            response = self.generator.generate(INTENT_PROMPT.format(content=message.content), config)
            intent = response.text.strip().strip(".").lower()
            if intent:
                entries.append(MessageMetadata(message_uuid=message.uuid, key=INTENT_KEY, value=intent))

        if entries:
            store.put_message_metadata(event.session_id, entries, is_privileged=True)
            logger.debug("Labelled %d messages in session %s", len(entries), event.session_id)
