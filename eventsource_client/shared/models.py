"""
MODULE OVERVIEW:
The typed data structures shared by the client, the CLI and the demo server,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`ConnectionOptions` is validated once at construction and frozen afterwards, so a
client can never be half-reconfigured mid-stream. `DecodedEvent` is what every
subscriber receives. `ReadyState` mirrors the browser EventSource phases, plus an
`INITIALIZING` phase for a client that has not streamed yet.
"""
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_serializer, field_validator
from pydantic.alias_generators import to_pascal


class ReadyState(Enum):
    INITIALIZING = -1
    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


# WHAT IS HAPPENING HERE:
# Callers may build options with snake_case keywords or with the PascalCase keys
# (`Headers`, `Payload`, `Method`, `Debug`, `MaxRetries`) used by config files.
# When no method is given, the presence of a payload decides between GET and POST.
# Headers are copied into a read-only mapping, so the caller's dict can change
# afterwards without reaching the client.
class ConnectionOptions(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_pascal, populate_by_name=True)

    headers: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    payload: str = ""
    method: Optional[str] = Field(default=None, validate_default=True)
    debug: bool = False
    max_retries: int = Field(default=3, ge=1)

    @field_validator("headers")
    @classmethod
    def _freeze_headers(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("headers")
    def _dump_headers(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    @field_validator("payload", mode="before")
    @classmethod
    def _none_payload_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("method")
    @classmethod
    def _resolve_method(cls, value: Optional[str], info: ValidationInfo) -> str:
        if not value:
            return "POST" if info.data.get("payload") else "GET"
        return value.upper()


class DecodedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str = "message"
    data: str
    id: Optional[str] = None
    retry_hint: Optional[int] = None
