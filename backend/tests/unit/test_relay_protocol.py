import pytest
from pydantic import ValidationError

from errands.domain.chat.models import MAX_CONTENT_LENGTH
from errands.domain.chat.protocol import (
	MessageSend,
	PresenceQuery,
	PresenceRegister,
	Typing,
	decode_frame,
	error_frame,
)


def test_register_frame_needs_no_payload():
	assert isinstance(decode_frame("presence:register", None), PresenceRegister)


def test_event_name_wins_over_payload_type():
	frame = decode_frame("presence:query", {"type": "message:send", "user_ids": ["a", "b"]})
	assert isinstance(frame, PresenceQuery)
	assert frame.user_ids == ["a", "b"]


def test_message_send_is_validated():
	frame = decode_frame("message:send", {"receiver_id": "u2", "content": "  hi  ", "client_msg_id": "c1"})
	assert isinstance(frame, MessageSend)
	assert frame.content == "hi"
	assert frame.client_msg_id == "c1"

	with pytest.raises(ValidationError):
		decode_frame("message:send", {"receiver_id": "u2", "content": ""})
	with pytest.raises(ValidationError):
		decode_frame("message:send", {"receiver_id": "u2", "content": "x" * (MAX_CONTENT_LENGTH + 1)})


def test_typing_frames_share_one_model():
	start = decode_frame("typing:start", {"receiver_id": "u2"})
	stop = decode_frame("typing:stop", {"receiver_id": "u2"})
	assert isinstance(start, Typing) and start.started
	assert isinstance(stop, Typing) and not stop.started


def test_unknown_event_is_rejected():
	with pytest.raises(ValidationError):
		decode_frame("room:join", {})


def test_error_frame_shape():
	assert error_frame("forbidden", "not_a_party", event="message:send") == {
		"code": "forbidden",
		"detail": "not_a_party",
		"event": "message:send",
	}
