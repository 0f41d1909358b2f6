"""Claude Code hook input/output schemas.

Only the fields the command guard reads are modeled; everything else the
assistant sends (session_id, transcript_path, ...) is ignored.
"""

from __future__ import annotations

from typing import Literal

import pydantic

PermissionDecision = Literal["allow", "deny", "ask"]


class HookModel(pydantic.BaseModel):
    """Base model for hook payloads."""

    model_config = pydantic.ConfigDict(
        extra="ignore",
        strict=True,
        frozen=True,
    )


class ToolInput(HookModel):
    command: str | None = None


class HookInput(HookModel):
    """PreToolUse hook input: ``{tool_name?, tool_input?: {command?}}``."""

    tool_name: str | None = None
    tool_input: ToolInput | None = None

    @property
    def command(self) -> str:
        """Return the submitted command, or an empty string when absent."""
        if self.tool_input is None or self.tool_input.command is None:
            return ""
        return self.tool_input.command


class HookSpecificOutput(HookModel):
    """Permission decision within a hook output."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    hook_event_name: str = pydantic.Field(alias="hookEventName")
    permission_decision: PermissionDecision = pydantic.Field(alias="permissionDecision")
    permission_decision_reason: str = pydantic.Field(alias="permissionDecisionReason")


class HookOutput(HookModel):
    """Hook output, serialized with ``model_dump_json(by_alias=True)``."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    hook_specific_output: HookSpecificOutput = pydantic.Field(alias="hookSpecificOutput")


def parse_hook_input(raw: str) -> tuple[HookInput | None, str | None]:
    """Parse raw stdin text into a HookInput.

    Returns:
        (hook_input, None) on success, (None, error_message) if the text is
        not JSON or does not match the schema.
    """
    try:
        return HookInput.model_validate_json(raw), None
    except pydantic.ValidationError as e:
        return None, str(e)


def build_hook_output(hook_event_name: str, decision: PermissionDecision, reason: str) -> HookOutput:
    """Wrap a decision in the hookSpecificOutput envelope."""
    return HookOutput(
        hook_specific_output=HookSpecificOutput(
            hook_event_name=hook_event_name,
            permission_decision=decision,
            permission_decision_reason=reason,
        )
    )
