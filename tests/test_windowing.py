from datetime import datetime, timedelta, timezone
from uuid import uuid4

from support_inbox.ingestion.windowing import (
    ActiveConversation,
    ActiveConversations,
    ConversationWindower,
    WindowAction,
    hours_between,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def _active(at=T0, customer_id="U1"):
    return ActiveConversation(id=uuid4(), customer_id=customer_id, last_message_at=at)


def test_first_message_opens_conversation():
    decision = ConversationWindower().decide(None, T0)

    assert decision.action is WindowAction.NEW
    assert decision.is_new
    assert decision.gap_hours == 0.0
    assert decision.conversation is None


def test_message_inside_window_continues():
    active = _active()
    decision = ConversationWindower().decide(active, T0 + timedelta(hours=2))

    assert decision.action is WindowAction.CONTINUE
    assert decision.gap_hours == 2.0
    assert decision.conversation is active


def test_gap_equal_to_window_continues():
    decision = ConversationWindower().decide(_active(), T0 + timedelta(hours=24))

    assert decision.action is WindowAction.CONTINUE


def test_gap_beyond_window_opens_new_conversation():
    decision = ConversationWindower().decide(_active(), T0 + timedelta(hours=30))

    assert decision.is_new
    assert decision.gap_hours == 30.0
    assert decision.conversation is None


def test_custom_window():
    windower = ConversationWindower(window_hours=1)

    assert windower.decide(_active(), T0 + timedelta(minutes=90)).is_new


def test_hours_between_treats_naive_as_utc():
    naive = datetime(2024, 3, 1, 9, 0)

    assert hours_between(naive, T0 + timedelta(hours=3)) == 3.0


def test_active_conversations_mapping():
    active = ActiveConversations()
    first = _active(customer_id="U1")
    replacement = _active(customer_id="U1")

    active.set(first)
    active.set(replacement)
    active.set(_active(customer_id="U2"))

    assert len(active) == 2
    assert "U1" in active
    assert active.get("U1") is replacement
    assert active.get("U3") is None
