"""Prompt templates for the butler responder and intent classifier."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from butler.guests.models import GuestContext
    from butler.intents.taxonomy import IntentDefinition

BUTLER_SYSTEM_PROMPT = """You are a friendly hotel concierge for {hotel_name}. Be warm, helpful, and BRIEF.

Response rules:
- Always respond in the language the guest is using. If unsure, default to English
- Keep responses to 1-2 sentences maximum
- Sound like a real person, not a corporate bot
- Use the guest's first name naturally (not every message)
- For requests: just confirm briefly ("Done!", "On the way!", "I'll arrange that")
- For questions: answer directly, no preamble

If you don't know something, just say so briefly and offer to connect them with staff."""

CLASSIFIER_SYSTEM_PROMPT = """You are an intent classifier for a hotel concierge system. Your task is to classify guest messages into one of the following intents:

{intent_list}

Respond ONLY with a JSON object in this exact format:
{{
  "intent": "<intent_name>",
  "confidence": <0.0-1.0>,
  "reasoning": "<brief explanation>"
}}

Rules:
- Choose the most specific matching intent
- Use "unknown" only if no intent matches
- Confidence should reflect how well the message matches the intent"""


class PromptTemplateStore:
    """Resolve prompt templates by purpose and provider."""

    _DEFAULT_TEMPLATES: Mapping[str, Mapping[str, str]] = {
        "butler": {"default": BUTLER_SYSTEM_PROMPT},
        "classifier": {"default": CLASSIFIER_SYSTEM_PROMPT},
    }

    def __init__(self, extra_templates: Mapping[str, Mapping[str, str]] | None = None):
        self._templates: dict[str, dict[str, str]] = {
            key: dict(value) for key, value in self._DEFAULT_TEMPLATES.items()
        }
        if extra_templates:
            for purpose, mapping in extra_templates.items():
                merged = self._templates.setdefault(purpose, {})
                merged.update(mapping)

    def resolve(self, purpose: str, provider: str = "default") -> str:
        """Return the template for ``purpose``, preferring a provider override."""

        templates = self._templates.get(purpose)
        if templates is None:
            raise KeyError(f"No prompt template registered for '{purpose}'")
        return templates.get(provider.lower()) or templates["default"]

    def classifier_prompt(
        self, definitions: Iterable[IntentDefinition], provider: str = "default"
    ) -> str:
        intent_list = "\n".join(f"- {d.name}: {d.description}" for d in definitions)
        return self.resolve("classifier", provider).format(intent_list=intent_list)

    def butler_prompt(
        self,
        hotel_name: str,
        guest_context: GuestContext | None = None,
        intent: IntentDefinition | None = None,
        provider: str = "default",
    ) -> str:
        prompt = self.resolve("butler", provider).format(hotel_name=hotel_name)
        prompt += render_guest_context(guest_context)
        if intent is not None and intent.name != "unknown":
            prompt += f"\n\n## Detected Intent: {intent.name}"
            if intent.department:
                prompt += f" (Department: {intent.department})"
            if intent.requires_action:
                prompt += "\nThis request needs staff action; confirm it will be taken care of."
        return prompt


def classifier_user_prompt(message: str) -> str:
    return f'Classify this guest message:\n\n"{message}"\n\nRespond with JSON only.'


def render_guest_context(guest_context: GuestContext | None) -> str:
    """Render the guest profile section appended to the system prompt."""

    if guest_context is None or guest_context.guest is None:
        return ""
    guest = guest_context.guest
    lines = ["", "", "## Guest", f"- Name: {guest.first_name} {guest.last_name}".rstrip()]
    if guest.language:
        lines.append(f"- Language: {guest.language}")
    if guest.loyalty_tier:
        lines.append(f"- Loyalty tier: {guest.loyalty_tier}")
    if guest.vip_status:
        lines.append(f"- VIP Status: {guest.vip_status}")
    reservation = guest_context.reservation
    if reservation is not None:
        if reservation.room_number:
            lines.append(f"- Room: {reservation.room_number}")
        lines.append(f"- Stay: {reservation.arrival_date} to {reservation.departure_date}")
        lines.append(f"- Reservation status: {reservation.status}")
    return "\n".join(lines)
