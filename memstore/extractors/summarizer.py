"""
Progressive summarization extractor.

Once more than `message_window` messages sit after the current summary
point, the oldest of them (all but the newest `message_window // 2`) are
folded together with the previous summary into a new Summary.
"""

import logging
import re
from typing import List, Optional

from memstore.generation.generator import BaseGenerator, GenerationConfig
from memstore.memory.schemas import Message, MessageEvent, Summary
from .base import BaseExtractor

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Review the current summary and the new lines of the conversation. Write a new summary that
extends the current summary with the new lines.

Requirements:
- Keep to <= {target_chars} characters total
- Keep facts, decisions, names and preferences; drop small talk
- Write in the third person, neutral tone

Current summary:
{previous}

New lines of conversation:
{lines}

New summary:"""


class SummaryExtractor(BaseExtractor):
    """
    Summarizes messages that fall out of the recent-message window.

    Args:
        generator: LLM generator
        message_window: Unsummarized messages tolerated before summarizing
        target_chars: Target summary length
    """

    name = "summarizer"

    def __init__(self, generator: BaseGenerator, message_window: int = 12, target_chars: int = 1200):
        if message_window < 2:
            raise ValueError("message_window must be at least 2")
        self.generator = generator
        self.message_window = message_window
        self.target_chars = target_chars

    def extract(self, store, event: MessageEvent) -> None:
        memory = store.get_memory(event.session_id, last_n=0)
        if len(memory.messages) <= self.message_window:
            return

        keep = self.message_window // 2
        to_summarize = memory.messages[:-keep]
        previous = memory.summary.content if memory.summary else ""

        content = self.build_summary(to_summarize, previous)
        summary = Summary(content=content, summary_point_uuid=to_summarize[-1].uuid)
        store.put_summary(event.session_id, summary)
        logger.info(
            "Summarized %d messages of session %s up to sequence %d",
            len(to_summarize), event.session_id, to_summarize[-1].sequence,
        )

    def build_summary(self, messages: List[Message], previous: str = "") -> str:
        """Ask the generator for an extended summary; compact the lines if it fails."""
        lines = "\n".join(f"{m.role}: {m.content}" for m in messages)
        prompt = SUMMARY_PROMPT.format(
            target_chars=self.target_chars,
            previous=previous or "(none)",
            lines=lines,
        )
        config = GenerationConfig(
            temperature=0.1,  # Low temperature for factual output
            max_new_tokens=max(64, self.target_chars // 3),
        )

        try:
            text = self.generator.generate(prompt, config).text.strip()
        except Exception as e:
            logger.warning("Summary generation failed, using compacted transcript: %s", e)
            text = ""

        if not text:
            text = self._compact(messages, previous)
        if len(text) > self.target_chars:
            text = text[: self.target_chars - 3] + "..."
        return text

    def _compact(self, messages: List[Message], previous: Optional[str]) -> str:
        parts = [previous.strip()] if previous else []
        for m in messages:
            content = re.sub(r"\s+", " ", m.content).strip()
            if content:
                parts.append(f"{m.role}: {content}")
        return "\n".join(parts)
