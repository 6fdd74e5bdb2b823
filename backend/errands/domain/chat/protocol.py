"""Frames exchanged on the realtime relay.

Client frames form a closed union discriminated by ``type`` (the Socket.IO
event name). ``decode_frame`` is the only place raw payloads are interpreted.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from errands.domain.chat.models import MAX_CONTENT_LENGTH

# client -> server
PRESENCE_REGISTER = "presence:register"
PRESENCE_UNREGISTER = "presence:unregister"
PRESENCE_QUERY = "presence:query"
MESSAGE_SEND = "message:send"
TYPING_START = "typing:start"
TYPING_STOP = "typing:stop"

# server -> client
PRESENCE_STATUS = "presence:status"
PRESENCE_ONLINE = "presence:online"
PRESENCE_OFFLINE = "presence:offline"
MESSAGE_RECEIVE = "message:receive"
MESSAGE_SENT = "message:sent"
NOTIFICATION_NEW = "notification:new"
REQUEST_UPDATE = "request:update"
RELAY_ERROR = "relay:error"
RELAY_READY = "relay:ready"

MAX_QUERY_IDS = 200


class _Frame(BaseModel):
	model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class PresenceRegister(_Frame):
	type: Literal["presence:register"]


class PresenceUnregister(_Frame):
	type: Literal["presence:unregister"]


class PresenceQuery(_Frame):
	type: Literal["presence:query"]
	user_ids: List[str] = Field(default_factory=list, max_length=MAX_QUERY_IDS)


class MessageSend(_Frame):
	type: Literal["message:send"] = "message:send"
	receiver_id: str = Field(..., min_length=1)
	content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
	request_id: Optional[str] = None
	product_id: Optional[str] = None
	client_msg_id: Optional[str] = Field(default=None, max_length=64)


class Typing(_Frame):
	type: Literal["typing:start", "typing:stop"]
	receiver_id: str = Field(..., min_length=1)

	@property
	def started(self) -> bool:
		return self.type == TYPING_START


ClientFrame = Annotated[
	Union[PresenceRegister, PresenceUnregister, PresenceQuery, MessageSend, Typing],
	Field(discriminator="type"),
]

_CLIENT_FRAME: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)

CLIENT_EVENTS = frozenset(
	{PRESENCE_REGISTER, PRESENCE_UNREGISTER, PRESENCE_QUERY, MESSAGE_SEND, TYPING_START, TYPING_STOP}
)


def decode_frame(event: str, data: Any) -> ClientFrame:
	"""Validate ``data`` received under ``event``; raises pydantic.ValidationError."""
	payload = dict(data) if isinstance(data, dict) else {}
	payload["type"] = event
	return _CLIENT_FRAME.validate_python(payload)


def error_frame(code: str, detail: str, *, event: Optional[str] = None) -> dict:
	frame = {"code": code, "detail": detail}
	if event:
		frame["event"] = event
	return frame
