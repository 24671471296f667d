"""Text classification service (relevance yes/no, sentiment label).

The OpenAI client raises on transport/API errors after retries; callers decide
the fallback (relevance fails open, sentiment drops to keyword scoring).
Malformed answers are not errors: they are parsed conservatively.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import openai
from tenacity import retry, stop_after_attempt, wait_exponential

from policyfront.ingestion.article_types import Sentiment


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
MAX_INPUT_CHARS = 1500

RELEVANCE_SYSTEM = (
    "You screen news articles for a policy monitoring service. "
    "Answer with a single word: yes or no."
)
SENTIMENT_SYSTEM = (
    "You classify the tone of news coverage toward a policy topic. "
    "Reply on one line as '<label>: <short rationale>' where <label> is exactly one of "
    "positive, negative, neutral."
)

_LABELS = {Sentiment.POSITIVE.value, Sentiment.NEGATIVE.value, Sentiment.NEUTRAL.value}


def first_word(answer: Optional[str]) -> str:
    m = re.match(r"\s*[\"'*`]*([A-Za-z]+)", answer or "")
    return m.group(1).lower() if m else ""


def is_affirmative(answer: Optional[str]) -> bool:
    """Only an explicit yes counts; anything ambiguous is a no."""
    return first_word(answer) == "yes"


def parse_sentiment_answer(answer: Optional[str]) -> Sentiment:
    """Label from a model answer; out-of-enum or malformed answers map to neutral."""
    word = first_word(answer)
    if word in _LABELS:
        return Sentiment(word)
    return Sentiment.NEUTRAL


class TextClassification:
    def classify_relevance(self, topic_description: str, text: str) -> bool:
        raise NotImplementedError

    def classify_sentiment(self, topic_name: str, title: str, text: str) -> Sentiment:
        raise NotImplementedError


class OpenAIClassifier(TextClassification):
    """Chat-completions classifier. Works with any OpenAI-compatible base_url."""

    def __init__(self, api_key: str, *, model: str = DEFAULT_MODEL, base_url: Optional[str] = None, timeout: int = 30):
        self.model = model or DEFAULT_MODEL
        self.client = openai.OpenAI(api_key=api_key, base_url=base_url or None, timeout=timeout)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=8), reraise=True)
    def _complete(self, system: str, user: str, *, max_tokens: int) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=0,
            max_tokens=max_tokens,
        )
        return (resp.choices[0].message.content or "").strip()

    def classify_relevance(self, topic_description: str, text: str) -> bool:
        prompt = (
            f"Topic: {topic_description}\n\n"
            f"Article:\n{(text or '')[:MAX_INPUT_CHARS]}\n\n"
            "Is this article actually about the topic above?"
        )
        answer = self._complete(RELEVANCE_SYSTEM, prompt, max_tokens=3)
        logger.debug(f"relevance answer={answer!r}")
        return is_affirmative(answer)

    def classify_sentiment(self, topic_name: str, title: str, text: str) -> Sentiment:
        prompt = (
            f'Classify the sentiment of this article toward "{topic_name}".\n\n'
            f"{title or ''}\n{(text or '')[:MAX_INPUT_CHARS]}"
        )
        answer = self._complete(SENTIMENT_SYSTEM, prompt, max_tokens=60)
        logger.debug(f"sentiment answer={answer!r}")
        return parse_sentiment_answer(answer)
