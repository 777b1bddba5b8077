"""Tests for session management and avatar generation."""

import pytest

from agent_service.domain.exceptions import SessionNotFoundError
from agent_service.domain.models import TitleState
from agent_service.domain.services import AvatarService, SessionService
from shared.metering.exceptions import AvatarLimitExceededError, MissingIdentityError
from shared.providers.exceptions import ProviderQuotaExceededError
from tests.fakes import FakeImageProvider


@pytest.fixture
def sessions(chats, metering) -> SessionService:
    return SessionService(chats, metering)


class TestSessionService:
    @pytest.mark.asyncio
    async def test_lists_only_own_sessions_newest_first(self, chat_service, sessions):
        first = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hello")
        await chat_service.handle_chat_turn(agent_id=1, user_id="user-2", session_id=None, message="Hello")
        second = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hi")

        listed = await sessions.list_sessions("user-1")

        assert [s.id for s in listed] == [second.session_id, first.session_id]
        assert listed[0].agent_name == "Ada"

    @pytest.mark.asyncio
    async def test_messages_in_order(self, chat_service, sessions):
        turn = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hello")

        messages = await sessions.list_messages("user-1", turn.session_id)

        assert [m.content for m in messages] == ["Hello", "Here is what I know."]

    @pytest.mark.asyncio
    async def test_other_users_session_is_not_found(self, chat_service, sessions):
        turn = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hello")

        with pytest.raises(SessionNotFoundError):
            await sessions.list_messages("user-2", turn.session_id)
        with pytest.raises(MissingIdentityError):
            await sessions.list_messages(None, turn.session_id)

    @pytest.mark.asyncio
    async def test_renamed_title_is_never_regenerated(self, chat_service, sessions, chats, completions):
        completions.title_error = ProviderQuotaExceededError("openai")
        turn = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hello")

        renamed = await sessions.rename_session("user-1", turn.session_id, "  My notes ")
        completions.title_error = None
        await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=turn.session_id, message="More")

        assert renamed.title == "My notes"
        assert chats.sessions[turn.session_id].title == "My notes"
        assert chats.sessions[turn.session_id].title_state == TitleState.GENERATED
        assert len(completions.title_calls) == 1

    @pytest.mark.asyncio
    async def test_delete_cascades_messages_and_usage_records(self, chat_service, sessions, chats, usage_repo):
        turn = await chat_service.handle_chat_turn(agent_id=1, user_id="user-1", session_id=None, message="Hello")
        assert len(usage_repo.records) == 2

        await sessions.delete_session("user-1", turn.session_id)

        assert turn.session_id not in chats.sessions
        assert chats.messages == []
        assert usage_repo.records == []
        # Deleting history does not refund usage.
        (period,) = usage_repo.periods.values()
        assert period.tokens_used == turn.tokens_charged


class TestAvatarService:
    @pytest.mark.asyncio
    async def test_generates_and_charges(self, metering, usage_repo):
        images = FakeImageProvider()
        service = AvatarService(images, metering)

        result = await service.generate_avatar("user-1", "A friendly owl wearing glasses.", agent_id=1)

        assert result.image_url == "https://images.example/avatar.png"
        assert result.tokens_charged == 10_000
        assert result.avatars_remaining == 4
        assert images.prompts == [
            "Professional avatar for an AI agent. A friendly owl wearing glasses. "
            "Centered, high quality, detailed, modern style."
        ]
        (period,) = usage_repo.periods.values()
        assert period.tokens_used == 10_000

    @pytest.mark.asyncio
    async def test_limit_reached_skips_provider(self, metering, usage_repo):
        period = await metering.current_period("user-1")
        await usage_repo.increment_usage(period.id, tokens=0, avatars=5)
        images = FakeImageProvider()

        with pytest.raises(AvatarLimitExceededError):
            await AvatarService(images, metering).generate_avatar("user-1", "owl")

        assert images.prompts == []

    @pytest.mark.asyncio
    async def test_provider_failure_is_not_charged(self, metering, usage_repo):
        images = FakeImageProvider(error=ProviderQuotaExceededError("openai"))

        with pytest.raises(ProviderQuotaExceededError):
            await AvatarService(images, metering).generate_avatar("user-1", "owl")

        (period,) = usage_repo.periods.values()
        assert period.tokens_used == 0
        assert period.avatars_generated == 0
