"""Tests for meeting providers, the provider factory and MeetingService fallback."""

import json
from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from coach_scheduling.core.config import Settings
from coach_scheduling.core.errors import MeetingProviderFailure
from coach_scheduling.services.meetings.base import MeetingDetails, MeetingProvider, MeetingRequest
from coach_scheduling.services.meetings.factory import get_provider
from coach_scheduling.services.meetings.google_meet import GoogleMeetProvider
from coach_scheduling.services.meetings.service import MeetingService
from coach_scheduling.services.meetings.simple import SimpleMeetProvider
from coach_scheduling.services.meetings.zoom import ZoomProvider

START = datetime(2025, 3, 1, 10, 0)


@pytest.fixture
def request_():
    return MeetingRequest(
        title="SOS Coaching Session - 7",
        start_time=START,
        duration_minutes=60,
        participants=["alice@example.com"],
    )


class TestSimpleMeetProvider:
    @pytest.mark.asyncio
    async def test_creates_unique_rooms(self, request_):
        provider = SimpleMeetProvider("https://meet.test/")

        first = await provider.create_meeting(request_)
        second = await provider.create_meeting(request_)

        assert first.join_url == f"https://meet.test/room/{first.meeting_id}"
        assert first.provider == "simple"
        assert first.meeting_id != second.meeting_id
        assert await provider.delete_meeting(first.meeting_id) is True


class TestFactory:
    def test_default_is_simple(self):
        provider = get_provider(Settings(meeting_provider="simple", meet_base_url="https://meet.test"))

        assert isinstance(provider, SimpleMeetProvider)
        assert provider.base_url == "https://meet.test"

    def test_google_when_configured(self):
        provider = get_provider(Settings(meeting_provider="google", google_calendar_access_token="tok"))

        assert isinstance(provider, GoogleMeetProvider)

    def test_zoom_when_configured(self):
        provider = get_provider(
            Settings(meeting_provider="Zoom", zoom_account_id="a", zoom_client_id="b", zoom_client_secret="c")
        )

        assert isinstance(provider, ZoomProvider)

    @pytest.mark.parametrize("name", ["google", "zoom"])
    def test_unconfigured_falls_back_to_simple(self, name):
        settings = Settings(
            meeting_provider=name,
            google_calendar_access_token="",
            zoom_account_id="",
            zoom_client_id="",
            zoom_client_secret="",
        )

        assert isinstance(get_provider(settings), SimpleMeetProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unsupported meeting provider"):
            get_provider(Settings(meeting_provider="teams"))


class TestGoogleMeetProvider:
    @pytest.mark.asyncio
    async def test_create_meeting(self, request_):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "evt1", "hangoutLink": "https://meet.google.com/abc-defg-hij"})

        provider = GoogleMeetProvider("tok", transport=httpx.MockTransport(handler))

        meeting = await provider.create_meeting(request_)

        assert meeting == MeetingDetails(
            meeting_id="evt1", join_url="https://meet.google.com/abc-defg-hij", provider="google"
        )
        assert seen["auth"] == "Bearer tok"
        assert seen["url"].params["conferenceDataVersion"] == "1"
        assert seen["body"]["start"]["dateTime"] == "2025-03-01T10:00:00Z"
        assert seen["body"]["end"]["dateTime"] == "2025-03-01T11:00:00Z"
        assert seen["body"]["attendees"] == [{"email": "alice@example.com"}]

    @pytest.mark.asyncio
    async def test_error_status_raises(self, request_):
        provider = GoogleMeetProvider(
            "tok", transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"error": "invalid"}))
        )

        with pytest.raises(MeetingProviderFailure):
            await provider.create_meeting(request_)

    @pytest.mark.asyncio
    async def test_missing_link_raises(self, request_):
        provider = GoogleMeetProvider("tok", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"id": "e"})))

        with pytest.raises(MeetingProviderFailure):
            await provider.create_meeting(request_)

    @pytest.mark.asyncio
    async def test_delete_treats_gone_as_done(self):
        provider = GoogleMeetProvider("tok", transport=httpx.MockTransport(lambda r: httpx.Response(410)))

        assert await provider.delete_meeting("evt1") is True


class TestZoomProvider:
    @staticmethod
    def _handler(meeting_status=201):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "zoom.us":
                return httpx.Response(200, json={"access_token": "zoom-token"})
            assert request.headers["Authorization"] == "Bearer zoom-token"
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(
                meeting_status,
                json={"id": 123456, "join_url": "https://zoom.us/j/123456", "password": "pw"},
            )

        return handler

    @pytest.mark.asyncio
    async def test_create_and_delete(self, request_):
        provider = ZoomProvider("acct", "cid", "secret", transport=httpx.MockTransport(self._handler()))

        meeting = await provider.create_meeting(request_)

        assert meeting.meeting_id == "123456"
        assert meeting.join_url == "https://zoom.us/j/123456"
        assert meeting.password == "pw"
        assert meeting.provider == "zoom"
        assert await provider.delete_meeting(meeting.meeting_id) is True

    @pytest.mark.asyncio
    async def test_rejected_create_raises(self, request_):
        provider = ZoomProvider("acct", "cid", "secret", transport=httpx.MockTransport(self._handler(400)))

        with pytest.raises(MeetingProviderFailure):
            await provider.create_meeting(request_)

    @pytest.mark.asyncio
    async def test_token_failure_on_delete_returns_false(self):
        provider = ZoomProvider(
            "acct", "cid", "secret", transport=httpx.MockTransport(lambda r: httpx.Response(401))
        )

        assert await provider.delete_meeting("123456") is False


class TestMeetingService:
    @staticmethod
    def _failing_provider(name="zoom"):
        provider = AsyncMock(spec=MeetingProvider)
        provider.name = name
        provider.create_meeting.side_effect = MeetingProviderFailure("zoom down")
        return provider

    @pytest.mark.asyncio
    async def test_uses_provider(self):
        service = MeetingService(SimpleMeetProvider("https://meet.test"), title_prefix="Session")

        meeting = await service.create_for_appointment(7, START, 60, participants=["a@example.com", ""])

        assert meeting.provider == "simple"

    @pytest.mark.asyncio
    async def test_passes_request_to_provider(self):
        provider = AsyncMock(spec=MeetingProvider)
        provider.name = "zoom"
        provider.create_meeting.return_value = MeetingDetails("1", "https://zoom.us/j/1", provider="zoom")
        service = MeetingService(provider, title_prefix="Session")

        await service.create_for_appointment(7, START, 45, participants=["a@example.com", ""])

        sent = provider.create_meeting.await_args.args[0]
        assert sent == MeetingRequest("Session - 7", START, 45, ["a@example.com"])

    @pytest.mark.asyncio
    async def test_falls_back_when_provider_fails(self):
        service = MeetingService(self._failing_provider(), fallback=SimpleMeetProvider("https://meet.test"))

        meeting = await service.create_for_appointment(7, START, 60)

        assert meeting.provider == "simple"

    @pytest.mark.asyncio
    async def test_raises_without_fallback(self):
        service = MeetingService(self._failing_provider())

        with pytest.raises(MeetingProviderFailure):
            await service.create_for_appointment(7, START, 60)

    def test_same_provider_is_not_its_own_fallback(self):
        service = MeetingService(SimpleMeetProvider("https://a.test"), fallback=SimpleMeetProvider("https://b.test"))

        assert service.fallback is None

    @pytest.mark.asyncio
    async def test_cancel_routes_to_fallback_provider(self):
        primary = self._failing_provider()
        fallback = AsyncMock(spec=MeetingProvider)
        fallback.name = "simple"
        fallback.delete_meeting.return_value = True
        service = MeetingService(primary, fallback=fallback)

        assert await service.cancel_meeting("room-1", "simple") is True
        fallback.delete_meeting.assert_awaited_once_with("room-1")
        primary.delete_meeting.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_never_raises(self):
        primary = self._failing_provider()
        primary.delete_meeting.side_effect = RuntimeError("boom")
        service = MeetingService(primary)

        assert await service.cancel_meeting("123", "zoom") is False
