import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timezone, timedelta
from typing import Optional

from marketplace_client.core.errors import NetworkError, NotFoundError, ServerError
from marketplace_client.models.schemas import Attachment, Message, ReadState
from marketplace_client.services.messages import MessageService
from marketplace_client.state.conversation import ConversationViewState, ConversationPhase, is_near_bottom

CURRENT_USER_ID = 1
OTHER_USER_ID = 2
PROJECT_ID = 10

NOW = datetime(2026, 1, 9, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_message_service():
    mock_service = MagicMock(spec=MessageService)
    mock_service.project_messages = AsyncMock(return_value=[])
    mock_service.send_message = AsyncMock(return_value={})
    mock_service.mark_all_as_read = AsyncMock(return_value=None)
    return mock_service


@pytest.fixture
def hooks():
    return {
        "scroll_to_bottom": MagicMock(),
        "alert": MagicMock(),
        "on_message_sent": MagicMock(),
    }


@pytest.fixture
def view(mock_message_service, hooks):
    return ConversationViewState(mock_message_service, current_user_id=CURRENT_USER_ID, **hooks)


# Helper functions
def create_mock_message(
    message_id: int,
    created_at: datetime,
    sender_id: int = OTHER_USER_ID,
    text: str = "Test message content",
    read_state: ReadState = ReadState.UNREAD,
    conversation_id: Optional[int] = PROJECT_ID,
):
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        receiver_id=CURRENT_USER_ID if sender_id == OTHER_USER_ID else OTHER_USER_ID,
        text=text,
        created_at=created_at,
        read_state=read_state,
    )


def loaded_view(view, mock_message_service, messages):
    mock_message_service.project_messages.return_value = messages
    asyncio.run(view.load(PROJECT_ID))
    return view


# --- Tests for load() ---

def test_load_sorts_messages_ascending(view, mock_message_service, hooks):
    unordered = [
        create_mock_message(3, NOW),
        create_mock_message(1, NOW - timedelta(days=1)),
        create_mock_message(2, NOW - timedelta(hours=2)),
    ]
    loaded_view(view, mock_message_service, unordered)

    timestamps = [msg.created_at for msg in view.messages]
    assert timestamps == sorted(timestamps)
    assert [msg.id for msg in view.messages] == [1, 2, 3]
    assert view.phase == ConversationPhase.READY
    assert view.loading is False
    mock_message_service.project_messages.assert_awaited_once_with(PROJECT_ID)
    hooks["scroll_to_bottom"].assert_called_once()


def test_load_keeps_backend_order_for_equal_timestamps(view, mock_message_service):
    same_time = [create_mock_message(i, NOW) for i in (7, 3, 5)]
    loaded_view(view, mock_message_service, same_time)
    assert [msg.id for msg in view.messages] == [7, 3, 5]


def test_load_fails_open_on_network_error(view, mock_message_service, hooks):
    mock_message_service.project_messages.side_effect = NetworkError("offline")

    asyncio.run(view.load(PROJECT_ID))

    assert view.messages == []
    assert view.phase == ConversationPhase.READY
    hooks["alert"].assert_not_called()
    hooks["scroll_to_bottom"].assert_not_called()


def test_load_missing_project_renders_empty(view, mock_message_service):
    mock_message_service.project_messages.side_effect = NotFoundError("Project not found")

    asyncio.run(view.load(PROJECT_ID))

    assert view.messages == []
    assert view.phase == ConversationPhase.READY


def test_load_fails_open_on_unreadable_payload(view, mock_message_service, hooks):
    async def fetch(project_id):
        return [Message.from_api({"id": 2, "content": 42, "created_at": "2026-01-09T10:00:00Z"}, project_id)]

    mock_message_service.project_messages.side_effect = fetch

    asyncio.run(view.load(PROJECT_ID))

    assert view.messages == []
    assert view.phase == ConversationPhase.READY
    hooks["alert"].assert_not_called()


def test_load_replaces_messages_wholesale(view, mock_message_service):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW), create_mock_message(2, NOW)])
    loaded_view(view, mock_message_service, [create_mock_message(9, NOW)])
    assert [msg.id for msg in view.messages] == [9]


def test_load_without_project_makes_no_request(view, mock_message_service):
    asyncio.run(view.load(None))

    mock_message_service.project_messages.assert_not_called()
    assert view.phase == ConversationPhase.READY
    assert view.messages == []


def test_load_without_project_clears_previous_history(view, mock_message_service):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])

    asyncio.run(view.load(None))

    assert view.conversation is None
    assert view.messages == []
    assert view.project_id is None
    assert view.phase == ConversationPhase.READY


def test_load_resets_scroll_follow(view, mock_message_service):
    view.scroll.is_near_bottom = False
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])
    assert view.scroll.is_near_bottom is True


def test_late_load_for_previous_project_is_dropped(view, mock_message_service):
    async def scenario():
        release = asyncio.Event()

        async def fetch(project_id):
            if project_id == PROJECT_ID:
                await release.wait()
                return [create_mock_message(1, NOW)]
            return [create_mock_message(2, NOW, conversation_id=project_id)]

        mock_message_service.project_messages.side_effect = fetch
        first = asyncio.create_task(view.load(PROJECT_ID))
        await asyncio.sleep(0)
        await view.load(11)
        release.set()
        await first

    asyncio.run(scenario())

    assert view.project_id == 11
    assert [msg.id for msg in view.messages] == [2]


# --- Tests for send() ---

@pytest.mark.parametrize("blank", ["", "   ", "\n\t"])
def test_send_blank_text_is_a_noop(view, mock_message_service, blank):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])

    result = asyncio.run(view.send(blank))

    assert result is None
    assert len(view.messages) == 1
    mock_message_service.send_message.assert_not_called()


def test_send_success_appends_acknowledged_message(view, mock_message_service, hooks):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW - timedelta(minutes=5))])
    hooks["scroll_to_bottom"].reset_mock()
    view.scroll.is_near_bottom = False
    view.draft = "hello"
    mock_message_service.send_message.return_value = {
        "id": 55,
        "project_id": PROJECT_ID,
        "sender_id": CURRENT_USER_ID,
        "receiver_id": OTHER_USER_ID,
        "content": "hello",
        "created_at": "2026-01-09T12:00:00.000000Z",
    }

    sent = asyncio.run(view.send("hello"))

    assert len(view.messages) == 2
    assert view.messages[-1].text == "hello"
    assert view.messages[-1].id == 55
    assert sent == view.messages[-1]
    assert view.sending is False
    assert view.phase == ConversationPhase.READY
    assert view.draft == ""
    assert view.scroll.is_near_bottom is True
    hooks["scroll_to_bottom"].assert_called_once()
    hooks["on_message_sent"].assert_called_once_with(sent)
    mock_message_service.send_message.assert_awaited_once_with(PROJECT_ID, "hello", attachments=[])


def test_send_trims_and_uses_draft(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    view.draft = "  from the input box  "
    mock_message_service.send_message.return_value = {"id": 56, "content": "from the input box"}

    asyncio.run(view.send())

    mock_message_service.send_message.assert_awaited_once_with(PROJECT_ID, "from the input box", attachments=[])
    assert view.messages[-1].text == "from the input box"


def test_send_with_malformed_ack_uses_local_echo(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    mock_message_service.send_message.return_value = {}

    sent = asyncio.run(view.send("hello"))

    assert str(sent.id).startswith("local-")
    assert sent.text == "hello"
    assert sent.sender_id == CURRENT_USER_ID
    assert view.messages == [sent]


def test_send_with_unreadable_ack_uses_local_echo(view, mock_message_service, hooks):
    loaded_view(view, mock_message_service, [])
    mock_message_service.send_message.return_value = {"id": 1.5, "content": "hello"}

    sent = asyncio.run(view.send("hello"))

    assert str(sent.id).startswith("local-")
    assert sent.text == "hello"
    assert view.messages == [sent]
    assert view.sending is False
    assert view.phase == ConversationPhase.READY
    hooks["alert"].assert_not_called()
    hooks["on_message_sent"].assert_called_once_with(sent)


def test_send_ack_without_text_keeps_typed_text(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    mock_message_service.send_message.return_value = {"id": 57}

    sent = asyncio.run(view.send("typed"))

    assert sent.id == 57
    assert sent.text == "typed"
    assert sent.sender_id == CURRENT_USER_ID


def test_send_failure_alerts_and_leaves_list_unchanged(view, mock_message_service, hooks):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])
    view.draft = "hello"
    mock_message_service.send_message.side_effect = ServerError("Database is down", status=500)

    result = asyncio.run(view.send("hello"))

    assert result is None
    assert len(view.messages) == 1
    assert view.sending is False
    assert view.phase == ConversationPhase.READY
    assert view.draft == "hello" # kept so the user can retry
    hooks["alert"].assert_called_once()
    assert "Database is down" in hooks["alert"].call_args.args[0]
    hooks["on_message_sent"].assert_not_called()


def test_sending_flag_is_set_while_request_is_in_flight(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    observed = {}

    async def ack(project_id, content, attachments=None):
        observed["sending"] = view.sending
        observed["phase"] = view.phase
        observed["length"] = len(view.messages)
        return {"id": 1, "content": content}

    mock_message_service.send_message.side_effect = ack
    asyncio.run(view.send("hello"))

    assert observed == {"sending": True, "phase": ConversationPhase.SENDING, "length": 0}
    assert view.sending is False


def test_send_with_attachment_only_is_sent(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    mock_message_service.send_message.return_value = {"id": 3, "content": ""}

    asyncio.run(view.send("", attachments=[Attachment(name="brief.pdf")]))

    mock_message_service.send_message.assert_awaited_once_with(
        PROJECT_ID, "", attachments=[Attachment(name="brief.pdf")],
    )
    assert len(view.messages) == 1


def test_send_without_project_alerts(view, mock_message_service, hooks):
    result = asyncio.run(view.send("hello"))

    assert result is None
    hooks["alert"].assert_called_once()
    mock_message_service.send_message.assert_not_called()


def test_overlapping_sends_are_both_appended(view, mock_message_service):
    loaded_view(view, mock_message_service, [])
    counter = {"next": 100}

    async def ack(project_id, content, attachments=None):
        await asyncio.sleep(0)
        counter["next"] += 1
        return {"id": counter["next"], "content": content}

    mock_message_service.send_message.side_effect = ack

    async def scenario():
        await asyncio.gather(view.send("first"), view.send("second"))

    asyncio.run(scenario())

    assert sorted(msg.text for msg in view.messages) == ["first", "second"]
    assert view.sending is False


# --- Tests for scroll-follow ---

def test_is_near_bottom_threshold():
    assert is_near_bottom(1000, 900, 200) is True # distance -100
    assert is_near_bottom(1000, 701, 200) is True # distance 99
    assert is_near_bottom(1000, 700, 200) is False # distance exactly 100
    assert is_near_bottom(1000, 0, 200) is False


def test_on_scroll_updates_follow_state(view):
    assert view.on_scroll(scroll_height=1000, scroll_top=0, client_height=200) is False
    assert view.scroll.is_near_bottom is False
    assert view.on_scroll(scroll_height=1000, scroll_top=900, client_height=200) is True
    assert view.scroll.is_near_bottom is True


def test_refresh_scrolls_only_when_following(view, mock_message_service, hooks):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])
    hooks["scroll_to_bottom"].reset_mock()
    mock_message_service.project_messages.return_value = [
        create_mock_message(1, NOW), create_mock_message(2, NOW + timedelta(minutes=1)),
    ]

    view.on_scroll(1000, 0, 200) # scrolled up to read history
    asyncio.run(view.refresh())
    assert len(view.messages) == 2
    hooks["scroll_to_bottom"].assert_not_called()

    view.on_scroll(1000, 900, 200)
    asyncio.run(view.refresh())
    hooks["scroll_to_bottom"].assert_called_once()


def test_refresh_failure_keeps_current_messages(view, mock_message_service):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])
    mock_message_service.project_messages.side_effect = NetworkError("offline")

    asyncio.run(view.refresh())

    assert [msg.id for msg in view.messages] == [1]


# --- Tests for grouping and read state ---

def test_three_messages_over_two_days_give_two_groups(view, mock_message_service):
    messages = [
        create_mock_message(1, datetime(2026, 1, 8, 10, 0, tzinfo=timezone.utc)),
        create_mock_message(2, datetime(2026, 1, 9, 9, 0, tzinfo=timezone.utc)),
        create_mock_message(3, datetime(2026, 1, 8, 10, 30, tzinfo=timezone.utc)),
    ]
    loaded_view(view, mock_message_service, messages)

    groups = list(view.group_by_date(now=NOW, tz=timezone.utc))

    assert [group.key for group in groups] == ["2026-01-08", "2026-01-09"]
    assert [group.label for group in groups] == ["Yesterday", "Today"]
    assert [msg.id for group in groups for msg in group.messages] == [1, 3, 2]
    assert groups[-1].messages[-1].id == 2


def test_group_by_date_is_restartable_and_non_mutating(view, mock_message_service):
    loaded_view(view, mock_message_service, [
        create_mock_message(1, NOW - timedelta(days=3)),
        create_mock_message(2, NOW),
    ])
    before = list(view.messages)

    first = [(g.key, [m.id for m in g.messages]) for g in view.group_by_date(now=NOW, tz=timezone.utc)]
    second = [(g.key, [m.id for m in g.messages]) for g in view.group_by_date(now=NOW, tz=timezone.utc)]

    assert first == second
    assert view.messages == before


def test_group_by_date_empty_conversation(view):
    assert list(view.group_by_date(now=NOW, tz=timezone.utc)) == []


def test_mark_read_updates_incoming_messages(view, mock_message_service):
    loaded_view(view, mock_message_service, [
        create_mock_message(1, NOW, sender_id=OTHER_USER_ID),
        create_mock_message(2, NOW, sender_id=CURRENT_USER_ID),
    ])
    assert view.conversation.unread_count == 1

    asyncio.run(view.mark_read())

    assert view.messages[0].read_state == ReadState.READ
    assert view.messages[1].read_state == ReadState.UNREAD
    assert view.conversation.unread_count == 0
    mock_message_service.mark_all_as_read.assert_awaited_once_with(PROJECT_ID)


def test_mark_read_failure_is_not_raised(view, mock_message_service):
    loaded_view(view, mock_message_service, [create_mock_message(1, NOW)])
    mock_message_service.mark_all_as_read.side_effect = NetworkError("offline")

    asyncio.run(view.mark_read())

    assert view.messages[0].is_read is True


def test_conversation_tracks_last_message_and_participants(view, mock_message_service):
    loaded_view(view, mock_message_service, [
        create_mock_message(1, NOW - timedelta(minutes=3), sender_id=CURRENT_USER_ID),
        create_mock_message(2, NOW, sender_id=OTHER_USER_ID),
    ])

    assert view.conversation.last_message.id == 2
    assert set(view.conversation.participant_ids) == {CURRENT_USER_ID, OTHER_USER_ID}
    assert view.is_own(view.messages[0]) is True
    assert view.is_own(view.messages[1]) is False
