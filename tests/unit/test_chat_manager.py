"""Unit tests for the aggregating chat manager."""

import asyncio
from datetime import datetime, timezone

import pytest
import yaml
from unittest.mock import AsyncMock

from chatdeck.adapters import MemoryAdapter
from chatdeck.chat import (
    AuthExpiredError,
    CapabilityDeniedError,
    CapabilityRule,
    CapabilityTag,
    ChatManager,
    Conversation,
    EmptyInputError,
    InvalidReferenceError,
    Message,
    ProviderAdapter,
    ProviderType,
    ProviderUnavailableError,
    SendRejectedError,
    clear_chat_manager,
    get_chat_manager,
)
from chatdeck.config import get_config
from chatdeck.storage import get_global_config_path

SENT_AT = datetime(2024, 3, 5, 12, tzinfo=timezone.utc)


class FailingAdapter(ProviderAdapter):
    """Adapter whose every operation fails with a given error."""

    def __init__(self, provider_id: str, error: Exception):
        super().__init__(provider_id, {CapabilityTag.CHAT_REPLY: CapabilityRule.ALWAYS})
        self.error = error

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.HTTP

    async def list_conversations(self) -> list[Conversation]:
        raise self.error

    async def list_messages(self, conversation: Conversation) -> list[Message]:
        raise self.error

    async def send(self, conversation: Conversation, text: str) -> None:
        raise self.error


class SlowAdapter(MemoryAdapter):
    """Memory adapter that records how many fetches overlap."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.active = 0
        self.peak = 0

    async def list_messages(self, conversation: Conversation) -> list[Message]:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return await super().list_messages(conversation)


def _records(*native_ids: str, day: int = 1) -> list[dict]:
    return [
        {
            "id": native_id,
            "subject": f"Thread {native_id}",
            "creator": "Ms. Martin",
            "date": f"2024-03-{day:02d}T08:00:00Z",
            "messages": [
                {
                    "id": "1",
                    "author": "Ms. Martin",
                    "content": f"Message in <b>{native_id}</b>",
                    "date": f"2024-03-{day:02d}T08:00:00Z",
                }
            ],
        }
        for native_id in native_ids
    ]


@pytest.fixture
def school(school_records) -> MemoryAdapter:
    return MemoryAdapter("school", "Alex Parent", school_records, clock=lambda: SENT_AT)


class TestAdapterRegistration:
    """Tests for registering and unregistering adapters."""

    def test_register(self, school):
        """Test adapters are kept in registration order."""
        other = MemoryAdapter("other")
        manager = ChatManager([school, other])
        assert [a.provider_id for a in manager.adapters] == ["school", "other"]

    def test_register_duplicate_raises(self, school):
        """Test registering two adapters with the same provider id."""
        manager = ChatManager([school])
        with pytest.raises(ValueError, match="already registered"):
            manager.register_adapter(MemoryAdapter("school"))

    @pytest.mark.asyncio
    async def test_unregister_drops_conversations_on_refresh(self, school):
        """Test an unregistered adapter contributes nothing afterwards."""
        manager = ChatManager([school, MemoryAdapter("other", records=_records("9"))])
        assert len(await manager.list_conversations()) == 3

        manager.unregister_adapter("other")
        conversations = await manager.list_conversations()
        assert {c.provider_id for c in conversations} == {"school"}


class TestListConversations:
    """Tests for aggregation across adapters."""

    @pytest.mark.asyncio
    async def test_empty_adapter_set(self):
        """Test listing with nothing registered."""
        manager = ChatManager()
        assert await manager.list_conversations() == []
        assert manager.conversations == []

    @pytest.mark.asyncio
    async def test_concatenates_in_adapter_order(self, school):
        """Test results are merged in registration order."""
        other = MemoryAdapter("other", records=_records("a", "b"))
        manager = ChatManager([school, other])

        conversations = await manager.list_conversations()

        assert [c.id for c in conversations] == [
            "school:101",
            "school:102",
            "other:a",
            "other:b",
        ]

    @pytest.mark.asyncio
    async def test_duplicates_keep_first_seen(self):
        """Test de-duplication by id keeps the earlier adapter's entry."""
        first = MemoryAdapter("school", records=_records("1"))
        second = AsyncMock(spec=ProviderAdapter)
        second.provider_id = "mirror"
        second.provider_type = ProviderType.HTTP
        second.list_conversations.return_value = [
            Conversation(
                id="school:1",
                provider_id="school",
                subject="Impostor",
                date="2024-03-09T08:00:00Z",
            ),
            Conversation(id="mirror:2", provider_id="mirror", date="2024-03-09T08:00:00Z"),
        ]
        manager = ChatManager([first, second])

        conversations = await manager.list_conversations()

        assert [c.id for c in conversations] == ["school:1", "mirror:2"]
        assert conversations[0].subject == "Thread 1"

    @pytest.mark.asyncio
    async def test_failing_adapter_contributes_nothing(self, school):
        """Test one failing adapter does not hide the others."""
        manager = ChatManager(
            [FailingAdapter("down", ProviderUnavailableError("offline")), school]
        )

        conversations = await manager.list_conversations()

        assert {c.provider_id for c in conversations} == {"school"}
        assert len(conversations) == 2

    @pytest.mark.asyncio
    async def test_all_adapters_failing(self):
        """Test every adapter failing yields an empty list, not an error."""
        manager = ChatManager(
            [
                FailingAdapter("a", AuthExpiredError("expired")),
                FailingAdapter("b", RuntimeError("boom")),
            ]
        )
        assert await manager.list_conversations() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_result", [None, 42, ["not a conversation"]])
    async def test_invalid_adapter_result_skipped(self, school, bad_result):
        """Test an adapter returning something other than conversations is skipped."""
        broken = AsyncMock(spec=ProviderAdapter)
        broken.provider_id = "broken"
        broken.provider_type = ProviderType.HTTP
        broken.list_conversations.return_value = bad_result
        manager = ChatManager([broken, school])

        conversations = await manager.list_conversations()

        assert [c.id for c in conversations] == ["school:101", "school:102"]
        broken.list_conversations.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test that cancellation is not absorbed like an adapter failure."""
        manager = ChatManager([FailingAdapter("a", asyncio.CancelledError())])
        with pytest.raises(asyncio.CancelledError):
            await manager.list_conversations()

    @pytest.mark.asyncio
    async def test_cache_replaced_wholesale(self):
        """Test conversations missing from a refresh disappear from the cache."""
        adapter = MemoryAdapter("school", records=_records("1", "2"))
        manager = ChatManager([adapter])
        await manager.list_conversations()
        await manager.refresh_previews()

        adapter.remove_conversation("2")
        await manager.list_conversations()

        assert [c.id for c in manager.conversations] == ["school:1"]
        assert manager.get_conversation("school:2") is None
        assert manager.cached_messages("school:2") is None
        assert "school:2" not in manager.previews

    @pytest.mark.asyncio
    async def test_conversations_sorted_newest_first(self):
        """Test the cached view is ordered by date, newest first."""
        older = MemoryAdapter("a", records=_records("1", day=1))
        newer = MemoryAdapter("b", records=_records("2", day=4))
        manager = ChatManager([older, newer])
        await manager.list_conversations()

        assert [c.id for c in manager.conversations] == ["b:2", "a:1"]

    @pytest.mark.asyncio
    async def test_adapters_queried_concurrently(self):
        """Test that adapters are awaited together, not one after another."""
        started: list[str] = []
        release = asyncio.Event()

        class GatedAdapter(MemoryAdapter):
            async def list_conversations(self) -> list[Conversation]:
                started.append(self.provider_id)
                await release.wait()
                return await super().list_conversations()

        manager = ChatManager([GatedAdapter("a"), GatedAdapter("b")])
        task = asyncio.create_task(manager.list_conversations())
        await asyncio.sleep(0.01)
        assert started == ["a", "b"]

        release.set()
        assert await task == []


class TestListMessages:
    """Tests for per-conversation message fetches."""

    @pytest.mark.asyncio
    async def test_returns_raw_messages(self, school):
        """Test messages come back unnormalized and are cached."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")

        messages = await manager.list_messages(conversation)

        assert [m.id for m in messages] == ["1", "2"]
        assert messages[0].content == "<p>Bring a packed lunch &amp; a coat.</p>"
        assert manager.cached_messages("school:101") == messages

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        """Test a conversation from an unregistered provider."""
        manager = ChatManager()
        conversation = Conversation(id="gone:1", provider_id="gone", date=SENT_AT)
        with pytest.raises(InvalidReferenceError):
            await manager.list_messages(conversation)

    @pytest.mark.asyncio
    async def test_adapter_error_propagates(self, school):
        """Test per-conversation failures reach the caller and leave the caches intact."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")
        messages = await manager.list_messages(conversation)
        conversations = manager.conversations

        error = AuthExpiredError("session expired", provider="school")
        school.list_messages = AsyncMock(side_effect=error)

        with pytest.raises(AuthExpiredError) as exc_info:
            await manager.list_messages(conversation)

        assert exc_info.value is error
        assert manager.conversations == conversations
        assert manager.cached_messages("school:101") == messages


class TestSend:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_send_returns_refreshed_thread(self, school):
        """Test the returned thread includes the sent message."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")

        messages = await manager.send(conversation, "  See you there  ")

        assert len(messages) == 3
        sent = messages[-1]
        assert sent.author == "Alex Parent"
        assert sent.content == "See you there"
        assert sent.date == SENT_AT
        assert manager.cached_messages("school:101") == messages

    @pytest.mark.asyncio
    async def test_send_escapes_markup(self, school):
        """Test sent text comes back as provider markup."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")

        messages = await manager.send(conversation, "Fish & chips <3")

        assert messages[-1].content == "Fish &amp; chips &lt;3"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
    async def test_blank_text_never_reaches_adapter(self, text):
        """Test blank input is rejected before any adapter call."""
        adapter = AsyncMock(spec=ProviderAdapter)
        adapter.provider_id = "school"
        adapter.provider_type = ProviderType.HTTP
        adapter.has_capability.return_value = True
        manager = ChatManager([adapter])
        conversation = Conversation(id="school:1", provider_id="school", date=SENT_AT)

        with pytest.raises(EmptyInputError):
            await manager.send(conversation, text)

        adapter.send.assert_not_called()
        adapter.list_messages.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_conversation(self, school):
        """Test sending without a selected conversation."""
        manager = ChatManager([school])
        with pytest.raises(EmptyInputError):
            await manager.send(None, "hello")

    @pytest.mark.asyncio
    async def test_unknown_provider(self, school):
        """Test sending into a conversation no registered adapter owns."""
        manager = ChatManager([school])
        conversation = Conversation(id="gone:1", provider_id="gone", date=SENT_AT)

        with pytest.raises(InvalidReferenceError) as exc_info:
            await manager.send(conversation, "hello")

        assert exc_info.value.provider == "gone"

    @pytest.mark.asyncio
    async def test_capability_denied(self, school_records):
        """Test sending where the provider forbids replies."""
        adapter = MemoryAdapter(
            "school",
            "Alex Parent",
            school_records,
            capabilities={CapabilityTag.CHAT_REPLY: CapabilityRule.OWN_THREADS},
        )
        manager = ChatManager([adapter])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")

        with pytest.raises(CapabilityDeniedError) as exc_info:
            await manager.send(conversation, "hello")

        assert exc_info.value.capability == "chat_reply"
        assert len(await adapter.list_messages(conversation)) == 2

    @pytest.mark.asyncio
    async def test_adapter_rejection_propagates(self):
        """Test provider refusals reach the caller."""
        manager = ChatManager([FailingAdapter("school", SendRejectedError("too long"))])
        conversation = Conversation(id="school:1", provider_id="school", date=SENT_AT)

        with pytest.raises(SendRejectedError):
            await manager.send(conversation, "hello")

    @pytest.mark.asyncio
    async def test_send_awaited_before_refetch(self):
        """Test the refetch happens strictly after the send completes."""
        calls: list[str] = []
        adapter = AsyncMock(spec=ProviderAdapter)
        adapter.provider_id = "school"
        adapter.provider_type = ProviderType.HTTP
        adapter.has_capability.return_value = True

        async def _send(conversation, text):
            await asyncio.sleep(0)
            calls.append("send")

        async def _list(conversation):
            calls.append("list")
            return []

        adapter.send.side_effect = _send
        adapter.list_messages.side_effect = _list
        manager = ChatManager([adapter])
        conversation = Conversation(id="school:1", provider_id="school", date=SENT_AT)

        await manager.send(conversation, "hello")

        assert calls == ["send", "list"]
        adapter.send.assert_awaited_once_with(conversation, "hello")

    @pytest.mark.asyncio
    async def test_refetch_failure_returns_cached_messages(self, school):
        """Test a failed refresh after a successful send keeps the old thread."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")
        before = await manager.list_messages(conversation)

        school.list_messages = AsyncMock(side_effect=ProviderUnavailableError("offline"))
        messages = await manager.send(conversation, "hello")

        assert messages == before

    @pytest.mark.asyncio
    async def test_refetch_failure_without_cache(self, school):
        """Test a failed refresh with nothing cached yields an empty thread."""
        manager = ChatManager([school])
        await manager.list_conversations()
        conversation = manager.get_conversation("school:101")

        school.list_messages = AsyncMock(side_effect=ProviderUnavailableError("offline"))
        assert await manager.send(conversation, "hello") == []


class TestPreviews:
    """Tests for preview refresh."""

    @pytest.mark.asyncio
    async def test_previews_for_every_conversation(self, school):
        """Test each conversation gets the normalized latest message."""
        manager = ChatManager([school])
        await manager.list_conversations()

        previews = await manager.refresh_previews()

        assert previews == {
            "school:101": "Noted, thanks!",
            "school:102": "Hello, is the exam on Friday?",
        }
        assert manager.preview("school:102") == "Hello, is the exam on Friday?"

    @pytest.mark.asyncio
    async def test_preview_length(self, school):
        """Test the configured length and marker."""
        manager = ChatManager([school], preview_length=5, preview_marker="...")
        await manager.list_conversations()

        await manager.refresh_previews()
        assert manager.preview("school:101") == "Noted..."

        await manager.refresh_previews(max_length=100)
        assert manager.preview("school:101") == "Noted, thanks!"

    @pytest.mark.asyncio
    async def test_failed_fetch_does_not_affect_others(self, school):
        """Test previews are computed independently per conversation."""
        manager = ChatManager([school])
        await manager.list_conversations()
        await manager.refresh_previews()

        fetch = school.list_messages

        async def _flaky(conversation):
            if conversation.id == "school:101":
                raise ProviderUnavailableError("offline")
            return await fetch(conversation)

        school.list_messages = _flaky
        school.add_record(
            {
                "id": "102",
                "recipient": "Mr. Dupont",
                "creator": "Alex Parent",
                "date": "2024-03-03T10:00:00Z",
                "created_by_account": True,
                "messages": [
                    {"id": "9", "author": "Mr. Dupont", "content": "Yes", "date": SENT_AT}
                ],
            }
        )

        previews = await manager.refresh_previews()

        assert previews["school:101"] == "Noted, thanks!"
        assert previews["school:102"] == "Yes"

    @pytest.mark.asyncio
    async def test_empty_thread_has_no_preview(self):
        """Test a conversation without messages previews as None."""
        adapter = MemoryAdapter("a", records=[{"id": "1", "date": "2024-03-01T08:00:00Z"}])
        manager = ChatManager([adapter])
        await manager.list_conversations()

        assert await manager.refresh_previews() == {"a:1": None}

    @pytest.mark.asyncio
    async def test_fetches_bounded(self):
        """Test preview fetches respect max_concurrent_fetches."""
        adapter = SlowAdapter("a", records=_records(*[str(i) for i in range(6)]))
        manager = ChatManager([adapter], max_concurrent_fetches=2)
        await manager.list_conversations()

        previews = await manager.refresh_previews()

        assert len(previews) == 6
        assert adapter.peak == 2


class TestLifecycle:
    """Tests for session reset, close and the singleton."""

    @pytest.mark.asyncio
    async def test_reset_session(self, school):
        """Test reset drops every cache."""
        manager = ChatManager([school])
        await manager.list_conversations()
        await manager.refresh_previews()

        manager.reset_session()

        assert manager.conversations == []
        assert manager.previews == {}
        assert manager.cached_messages("school:101") is None

    @pytest.mark.asyncio
    async def test_close_survives_adapter_errors(self, school):
        """Test close() visits every adapter even if one fails."""
        broken = MemoryAdapter("broken")
        broken.close = AsyncMock(side_effect=RuntimeError("already closed"))
        school.close = AsyncMock()
        manager = ChatManager([broken, school])

        await manager.close()

        school.close.assert_awaited_once()

    def test_get_chat_manager_from_config(self, sample_config):
        """Test the singleton is built from configuration."""
        get_global_config_path().write_text(yaml.safe_dump(sample_config))

        manager = get_chat_manager()

        assert manager is get_chat_manager()
        assert [a.provider_id for a in manager.adapters] == ["office"]
        assert manager.preview_length == 40
        assert manager.preview_length == get_config().chat.preview_length

    def test_clear_chat_manager(self):
        """Test clearing forces a rebuild."""
        first = get_chat_manager()
        clear_chat_manager()
        assert get_chat_manager() is not first
