import asyncio
import logging
import pytest
from unittest.mock import AsyncMock, MagicMock

from marketplace_client.core.errors import NetworkError
from marketplace_client.models.schemas import ConversationSummary, LastMessagePreview, ParticipantPreview
from marketplace_client.services.messages import MessageService
from marketplace_client.state.conversation_list import ConversationListState


def create_mock_summary(conversation_id: int, title: str, other_name: str, last_text: str = "", unread: int = 0):
    return ConversationSummary(
        id=conversation_id,
        project_id=conversation_id,
        project_title=title,
        other_user=ParticipantPreview(id=conversation_id + 100, name=other_name),
        last_message=LastMessagePreview(text=last_text),
        unread_count=unread,
    )


@pytest.fixture
def summaries():
    return [
        create_mock_summary(10, "Landing page redesign", "Freelancer Demo", "Draft is ready", unread=2),
        create_mock_summary(11, "Logo design", "Designer", "Thanks!", unread=1),
    ]


@pytest.fixture
def mock_message_service(summaries):
    mock_service = MagicMock(spec=MessageService)
    mock_service.conversations = AsyncMock(return_value=summaries)
    mock_service.unread_count = AsyncMock(return_value=5)
    return mock_service


# --- Tests for refresh() ---

def test_refresh_loads_conversations_and_unread(mock_message_service, summaries):
    on_change = MagicMock()
    state = ConversationListState(mock_message_service, on_change=on_change)

    asyncio.run(state.refresh())

    assert state.conversations == summaries
    assert state.unread_count == 5
    assert state.loading is False
    on_change.assert_called_once()


def test_unread_falls_back_to_sum_of_conversations(mock_message_service):
    mock_message_service.unread_count.side_effect = NetworkError("offline")
    state = ConversationListState(mock_message_service)

    asyncio.run(state.refresh())

    assert state.unread_count == 3


def test_failed_conversation_load_leaves_empty_list(mock_message_service):
    mock_message_service.conversations.side_effect = NetworkError("offline")
    mock_message_service.unread_count.side_effect = NetworkError("offline")
    state = ConversationListState(mock_message_service)

    asyncio.run(state.refresh())

    assert state.conversations == []
    assert state.unread_count == 0
    assert state.loading is False


# --- Tests for polling ---

def test_polling_refreshes_until_stopped(mock_message_service):
    state = ConversationListState(mock_message_service, poll_interval=0.01)

    async def scenario():
        state.start()
        assert state.polling is True
        await asyncio.sleep(0.05)
        await state.stop()
        assert state.polling is False
        calls = mock_message_service.conversations.await_count
        await asyncio.sleep(0.03)
        return calls

    calls_at_stop = asyncio.run(scenario())

    assert calls_at_stop >= 2
    assert mock_message_service.conversations.await_count == calls_at_stop


def test_polling_survives_a_failing_refresh(mock_message_service, summaries, caplog):
    fetches = []

    async def conversations():
        fetches.append(1)
        if len(fetches) == 1:
            raise KeyError("id")
        return summaries

    mock_message_service.conversations.side_effect = conversations
    state = ConversationListState(mock_message_service, poll_interval=0.01)

    async def scenario():
        state.start()
        await asyncio.sleep(0.05)
        alive = state.polling
        await state.stop()
        return alive

    with caplog.at_level(logging.ERROR):
        alive = asyncio.run(scenario())

    assert alive is True
    assert mock_message_service.conversations.await_count >= 2
    assert state.conversations == summaries
    assert "Conversation list refresh failed" in caplog.text


def test_start_twice_keeps_one_task(mock_message_service):
    state = ConversationListState(mock_message_service, poll_interval=10)

    async def scenario():
        first = state.start()
        second = state.start()
        await state.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second


def test_context_manager_stops_polling(mock_message_service):
    state = ConversationListState(mock_message_service, poll_interval=10)

    async def scenario():
        async with state:
            await asyncio.sleep(0)
            assert state.polling is True
        return state.polling

    assert asyncio.run(scenario()) is False
    assert mock_message_service.conversations.await_count == 1


def test_stop_without_start_is_harmless(mock_message_service):
    state = ConversationListState(mock_message_service)
    asyncio.run(state.stop())
    assert state.polling is False


# --- Tests for search() ---

def test_search_matches_title_name_and_last_message(mock_message_service, summaries):
    state = ConversationListState(mock_message_service)
    asyncio.run(state.refresh())

    assert [conv.id for conv in state.search("logo")] == [11]
    assert [conv.id for conv in state.search("FREELANCER")] == [10]
    assert [conv.id for conv in state.search("draft")] == [10]
    assert state.search("  ") == summaries
    assert state.search("nothing like this") == []
