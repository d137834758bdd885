"""Unit tests for HTTP and WebSocket endpoints."""
from unittest.mock import Mock

from app.core.dependencies import get_call_stream_processor, get_object_storage
from app.main import app
from tests.fakes import InMemoryStorage


class TestHealthAPI:
    """Test health and root endpoints."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok"}

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert "version" in response.json()


class TestVoiceWebhook:
    """Test the Twilio incoming call webhook."""

    def test_incoming_call_connects_stream(self, test_client):
        response = test_client.post(
            "/webhooks/voice/incoming",
            data={"CallSid": "CA1", "From": "+15550001111", "To": "+15550002222"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        body = response.text
        assert "<Connect>" in body
        assert 'url="wss://testserver/stream"' in body
        assert 'name="from"' in body
        assert 'value="+15550001111"' in body

    def test_incoming_call_requires_call_sid(self, test_client):
        response = test_client.post("/webhooks/voice/incoming", data={"From": "+1"})

        assert response.status_code == 422


class TestMediaStreamEndpoint:
    """Test the media stream WebSocket."""

    def test_socket_is_handed_to_processor(self, test_client):
        processor = Mock()
        processor.session.call_sid = "CA1"
        handled = []

        async def fake_process(websocket):
            handled.append(websocket)
            await websocket.close()

        processor.process = fake_process
        app.dependency_overrides[get_call_stream_processor] = lambda: processor

        with test_client.websocket_connect("/stream") as websocket:
            message = websocket.receive()

        assert message["type"] == "websocket.close"
        assert len(handled) == 1


class TestCallsAPI:
    """Test persisted call artifact endpoints."""

    def _override_storage(self):
        storage = InMemoryStorage()
        storage.objects[("call-logs", "CA1.json")] = b'{"callSid": "CA1", "fraudDetected": false}'
        storage.objects[("call-audio", "CA1.wav")] = b"RIFF....WAVE"
        app.dependency_overrides[get_object_storage] = lambda: storage
        return storage

    def test_get_call_log(self, test_client):
        self._override_storage()

        response = test_client.get("/api/calls/CA1/log")

        assert response.status_code == 200
        assert response.json() == {"callSid": "CA1", "fraudDetected": False}

    def test_get_call_log_not_found(self, test_client):
        self._override_storage()

        response = test_client.get("/api/calls/CA404/log")

        assert response.status_code == 404

    def test_get_call_audio(self, test_client):
        self._override_storage()

        response = test_client.get("/api/calls/CA1/audio")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/wav"
        assert response.content == b"RIFF....WAVE"

    def test_get_call_audio_not_found(self, test_client):
        self._override_storage()

        response = test_client.get("/api/calls/CA404/audio")

        assert response.status_code == 404
