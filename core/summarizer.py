"""AI summarisation using the Claude API.

Provides two kinds of summary, both 8–10 sentences of neutral prose:

1. **Conflict-level** — a single named UCDP conflict within one country.

2. **Country-level** — the aggregated conflict situation across a whole
   country: all active conflicts, the trailing year, cumulative impact.

Prompt wording and decoding parameters come from ``Settings`` and the
constants below; they are configuration, not a contract with callers.

The Anthropic client is lazy-initialised so that the class can be
instantiated in tests without requiring a live API key.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import anthropic

from core.errors import GenerationEmpty, GenerationFailed
from core.models import SummaryTarget, TargetKind

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


# ── Prompts ────────────────────────────────────────────────────────────────────

#: System instruction sent with every generation request.
SUMMARY_SYSTEM = (
    "You are an assistant that writes concise, neutral, factual summaries "
    "in UK English."
)

_CONFLICT_PROMPT = """\
Write an 8-10 sentence neutral, factual summary in UK English of the armed conflict called "{conflict_name}" in {country_name}.
Explain briefly:
- Who the main parties are
- Historical and political background
- Main causes and triggers
- Geographic scope and approximate time period
- Scale of violence and humanitarian impact
Avoid jargon and do not speculate beyond widely known facts."""

_COUNTRY_PROMPT = """\
Write an 8-10 sentence neutral, intelligence-style summary in UK English of the overall armed conflict situation in {country_name}, aggregated across the whole country.
Cover briefly:
- An overview of all active conflicts and the main actors involved
- Key developments over roughly the past year
- Cumulative humanitarian impact, including displacement
- Historical and structural drivers of the violence
Avoid jargon and do not speculate beyond widely known facts."""


def build_prompt(
    target: SummaryTarget,
    conflict_name: Optional[str] = None,
    country_name: Optional[str] = None,
    country_id: Optional[int] = None,
) -> str:
    """Return the user prompt for *target*.

    Missing display names fall back to synthesised ones (``Conflict 123``,
    ``country ID 45``) so a prompt can always be built from ids alone.
    """
    if target.kind is TargetKind.CONFLICT:
        if not country_name:
            country_name = (
                f"country ID {country_id}" if country_id else "the country in question"
            )
        return _CONFLICT_PROMPT.format(
            conflict_name=conflict_name or f"Conflict {target.id}",
            country_name=country_name,
        )

    return _COUNTRY_PROMPT.format(country_name=country_name or f"country ID {target.id}")


# ── Summariser ─────────────────────────────────────────────────────────────────


class Summarizer:
    """Generates summaries using the Claude API.

    One request per call and no automatic retries; a failed generation is
    surfaced to the caller, who may ask again.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialise the summariser.

        Args:
            settings: Application configuration.
        """
        self.settings = settings
        self._client: Optional[anthropic.Anthropic] = None

    @property
    def model_id(self) -> str:
        return self.settings.summary_model

    @property
    def client(self) -> anthropic.Anthropic:
        """Lazy-initialise and return the Anthropic SDK client."""
        if self._client is None:
            self._client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
                max_retries=0,
                timeout=self.settings.http_timeout,
            )
        return self._client

    def generate(self, prompt: str) -> str:
        """Send *prompt* to the model and return the generated text.

        Args:
            prompt: The user prompt built by ``build_prompt``.

        Returns:
            The stripped summary text.

        Raises:
            GenerationFailed: The API answered with an error status or could
                not be reached.
            GenerationEmpty: The API answered but produced no text.
        """
        try:
            response = self.client.messages.create(
                model=self.settings.summary_model,
                max_tokens=self.settings.summary_max_tokens,
                temperature=self.settings.summary_temperature,
                system=SUMMARY_SYSTEM,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as exc:
            body = exc.response.text
            logger.error("Generation backend error %d: %s", exc.status_code, body)
            raise GenerationFailed(exc.status_code, body) from exc
        except anthropic.APIConnectionError as exc:
            logger.error("Generation backend unreachable: %s", exc)
            raise GenerationFailed(None, str(exc)) from exc

        text = "".join(
            getattr(block, "text", "") or ""
            for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise GenerationEmpty()
        return text
