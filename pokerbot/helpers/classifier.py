"""
Turns a player's free-text SMS into a structured decision.

The model is asked for JSON only; whatever comes back is validated against
the two decision shapes below. Anything that does not validate, and any API
failure, becomes an escalation so a human sees the message.
"""
import enum
import json
import re
from dataclasses import dataclass, field
from typing import Annotated, Literal, Optional, Union

import anthropic
from flask import current_app
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from pokerbot.errors import MalformedClassifierOutput, UpstreamFailure

_client = None
_client_key = None


class SideEffect(str, enum.Enum):
    CONFIRM_PLAYER = "confirm_player"
    DECLINE_PLAYER = "decline_player"
    OPT_OUT_PLAYER = "opt_out_player"
    SEND_CALENDAR_INVITE = "send_calendar_invite"
    INVITE_NEXT = "invite_next"


class AutoRespondDecision(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: Literal["auto_respond"] = "auto_respond"
    reply_text: str = Field(alias="response", min_length=1)
    side_effects: list[SideEffect] = Field(default_factory=list)


class EscalateDecision(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: Literal["escalate"] = "escalate"
    reason: str = Field(min_length=1)
    suggested_reply: Optional[str] = Field(default=None, alias="suggested_response")


Decision = Annotated[Union[AutoRespondDecision, EscalateDecision], Field(discriminator="action")]
_decision_adapter = TypeAdapter(Decision)


SYSTEM_PROMPT = """You are Pokerbot. You text with players of a small private home poker game about their invitation to the next game.

Tone: casual, short, friendly. This is SMS. Use the player's first name when it reads naturally.

You may only answer on your own when you are certain. Otherwise hand the message to the hosts.

Answer on your own for:
- A clear yes ("yes", "yep", "I'm in", "count me in"): reply with a short confirmation. side_effects: ["confirm_player", "send_calendar_invite"]
- A clear no ("no", "can't make it", "I'm out"): reply with a short thanks. side_effects: ["decline_player", "invite_next"]
- Opting out ("stop", "unsubscribe", "remove me"): confirm they will get no more texts. side_effects: ["opt_out_player", "invite_next"]
- "What time?": reply with the game time only. side_effects: []
- "Where?" / "address?": reply with the location (and entry instructions if given). side_effects: []
- "Running late": "No problem, see you when you get there." side_effects: []

Hand to the hosts for anything else, including:
- bringing a friend, or asking who else is coming
- changing a previous answer
- money, buy-in, stakes
- complaints
- anything ambiguous

Respond with a single JSON object and nothing else.

To answer on your own:
{"action": "auto_respond", "response": "<text to send>", "side_effects": [...]}

To hand off:
{"action": "escalate", "reason": "<why the hosts should look>", "suggested_response": "<your best draft or null>"}

Allowed side_effects: "confirm_player", "decline_player", "opt_out_player", "send_calendar_invite", "invite_next".
"""


@dataclass
class ClassifierContext:
    player_message: str
    player_name: str
    player_status: str
    game_date: str
    game_time: str
    game_location: str
    game_time_block: str = ""
    entry_instructions: str = ""
    # [("player" | "bot", text), ...] oldest first
    history: list = field(default_factory=list)


def get_client() -> anthropic.Anthropic:
    global _client, _client_key

    api_key = current_app.config.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise UpstreamFailure("ANTHROPIC_API_KEY not configured")

    if _client is None or _client_key != api_key:
        _client = anthropic.Anthropic(
            api_key=api_key,
            timeout=current_app.config.get("ANTHROPIC_TIMEOUT", 20),
        )
        _client_key = api_key
    return _client


def build_user_prompt(context: ClassifierContext) -> str:
    lines = [
        f"PLAYER: {context.player_name} (status: {context.player_status})",
        f"GAME: {context.game_date} at {context.game_time}, {context.game_location}",
    ]
    if context.game_time_block:
        lines.append(f"TIME BLOCK: {context.game_time_block}")
    if context.entry_instructions:
        lines.append(f"ENTRY INSTRUCTIONS: {context.entry_instructions}")

    if context.history:
        lines.append("")
        lines.append("CONVERSATION HISTORY:")
        for role, text in context.history:
            lines.append(f"{role.upper()}: {text}")

    lines.append("")
    lines.append(f"INCOMING MESSAGE: {json.dumps(context.player_message)}")
    lines.append("")
    lines.append("Respond with JSON only.")
    return "\n".join(lines)


_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_decision(text: str):
    """Validate raw model output into a decision, or raise MalformedClassifierOutput."""
    raw = (text or "").strip()
    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1)

    try:
        return _decision_adapter.validate_json(raw)
    except ValidationError as e:
        raise MalformedClassifierOutput(f"Invalid decision: {e.errors()[0].get('msg', 'validation error')}") from e


def classify(context: ClassifierContext):
    """
    Ask the model what to do with an inbound message.

    Always returns a decision; failures of any kind escalate.
    """
    try:
        client = get_client()
        response = client.messages.create(
            model=current_app.config.get("ANTHROPIC_MODEL"),
            max_tokens=500,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_user_prompt(context)}],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise MalformedClassifierOutput("No text in classifier response")
        decision = parse_decision(text)
    except (anthropic.APIError, MalformedClassifierOutput, UpstreamFailure) as e:
        current_app.logger.warning("[CLASSIFIER] Escalating, classifier failed: %s", e)
        return EscalateDecision(reason=f"Failed to classify reply: {e}", suggested_reply=None)

    current_app.logger.info("[CLASSIFIER] %s for %s", decision.action, context.player_name)
    return decision
