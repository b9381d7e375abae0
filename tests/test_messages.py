from types import SimpleNamespace

from kazilens.live.messages import AudioFragment, Interrupted, TranscriptFragment, parse_server_message


class TestParseServerMessage:
    def test_event_order(self):
        message = {
            "server_content": {
                "interrupted": True,
                "model_turn": {"parts": [
                    {"inline_data": {"data": b"\x00\x00", "mime_type": "audio/pcm;rate=24000"}},
                    {"inline_data": {"data": b"\x01\x00", "mime_type": "audio/pcm;rate=24000"}},
                ]},
                "input_transcription": {"text": "I led the migration"},
                "output_transcription": {"text": "Tell me more"},
            }
        }
        events = parse_server_message(message)
        assert events == [
            TranscriptFragment("output", "Tell me more"),
            TranscriptFragment("input", "I led the migration"),
            AudioFragment(b"\x00\x00", "audio/pcm;rate=24000"),
            AudioFragment(b"\x01\x00", "audio/pcm;rate=24000"),
            Interrupted(),
        ]

    def test_sdk_style_objects(self):
        part = SimpleNamespace(inline_data=SimpleNamespace(data=b"\x00\x00", mime_type="audio/pcm;rate=24000"))
        message = SimpleNamespace(server_content=SimpleNamespace(
            output_transcription=None,
            input_transcription=SimpleNamespace(text="hello"),
            model_turn=SimpleNamespace(parts=[part]),
            interrupted=False,
        ))
        assert parse_server_message(message) == [
            TranscriptFragment("input", "hello"),
            AudioFragment(b"\x00\x00", "audio/pcm;rate=24000"),
        ]

    def test_non_audio_parts_skipped(self):
        message = {"server_content": {"model_turn": {"parts": [
            {"text": "thinking"},
            {"inline_data": {"data": b"{}", "mime_type": "application/json"}},
        ]}}}
        assert parse_server_message(message) == []

    def test_message_without_server_content(self):
        assert parse_server_message({"setup_complete": {}}) == []
        assert parse_server_message(SimpleNamespace(server_content=None)) == []
