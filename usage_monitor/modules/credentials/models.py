from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ClaudeCodeOAuth(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: StrictStr = Field(alias="accessToken", min_length=1)


class ClaudeCodeCredentials(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    claude_ai_oauth: ClaudeCodeOAuth = Field(alias="claudeAiOauth")
