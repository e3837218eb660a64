"""Tests for chat command parsing."""

import pytest
from chatrelay.models.messages import (
    BroadcastCommand,
    PrivateCommand,
    RegisterCommand,
    delivery_confirmation,
    joined_notice,
    parse_message,
    private_delivery,
    target_not_found,
)


class TestParseMessage:
    def test_parse_register(self):
        msg = parse_message("register:alice")
        assert isinstance(msg, RegisterCommand)
        assert msg.username == "alice"
        assert msg.type == "register"

    def test_register_keeps_everything_after_prefix(self):
        msg = parse_message("register:alice:smith")
        assert isinstance(msg, RegisterCommand)
        assert msg.username == "alice:smith"

    def test_register_empty_name(self):
        msg = parse_message("register:")
        assert isinstance(msg, RegisterCommand)
        assert msg.username == ""

    def test_parse_private(self):
        msg = parse_message("private:bob:hello")
        assert isinstance(msg, PrivateCommand)
        assert msg.target == "bob"
        assert msg.body == "hello"

    def test_private_splits_on_first_colon_only(self):
        msg = parse_message("private:bob:a:b:c")
        assert isinstance(msg, PrivateCommand)
        assert msg.target == "bob"
        assert msg.body == "a:b:c"

    def test_private_empty_body(self):
        msg = parse_message("private:bob:")
        assert isinstance(msg, PrivateCommand)
        assert msg.body == ""

    @pytest.mark.parametrize("text", ["private:onlytarget", "private:"])
    def test_malformed_private_falls_back_to_broadcast(self, text):
        msg = parse_message(text)
        assert isinstance(msg, BroadcastCommand)
        assert msg.text == text

    @pytest.mark.parametrize("text", [
        "hello everyone",
        "",
        "Register:alice",
        " register:alice",
        "alice: private:bob:hi",
    ])
    def test_other_text_is_broadcast_verbatim(self, text):
        msg = parse_message(text)
        assert isinstance(msg, BroadcastCommand)
        assert msg.text == text


class TestNotices:
    def test_notice_texts(self):
        assert joined_notice("dave") == "dave has joined the chat!"
        assert private_delivery("alice", "hello") == "Private message from alice: hello"
        assert delivery_confirmation("bob") == "Message sent to bob"
        assert target_not_found("carol") == "User carol not found!"
