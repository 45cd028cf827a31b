import pytest

from redphone.conversations import ConversationContextStore, ExpiringCache, SessionNotFoundError
from redphone.nlp import EntityExtractor, MessageAnalyser

DEAL_MESSAGE = "I need approval for a 30% discount on a $250k enterprise new business deal"


@pytest.fixture
def store(clock) -> ConversationContextStore:
    return ConversationContextStore(
        max_messages=20, ttl_seconds=60, sweep_interval_seconds=30, clock=clock
    )


def _say(store, session_id, text):
    analysis = MessageAnalyser().analyse(text)
    store.add_message(session_id, "user", text, analysis)
    return analysis


# ---------------------------------------------------------------------------
# Expiring cache
# ---------------------------------------------------------------------------


def test_cache_entries_expire_after_inactivity(clock):
    cache = ExpiringCache(ttl_seconds=10, sweep_interval_seconds=5, clock=clock)
    cache.set("a", 1)
    clock.advance(8)
    assert cache.get("a") == 1
    clock.advance(8)
    assert cache.get("a") == 1
    clock.advance(11)
    assert "a" not in cache
    assert cache.get("a") is None


def test_cache_sweeps_lazily(clock):
    cache = ExpiringCache(ttl_seconds=10, sweep_interval_seconds=5, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    clock.advance(11)
    assert len(cache) == 2
    cache.get("c")
    assert len(cache) == 0


def test_cache_sweep_counts_evictions(clock):
    cache = ExpiringCache(ttl_seconds=10, sweep_interval_seconds=100, clock=clock)
    cache.set("old", 1)
    clock.advance(6)
    cache.set("new", 2)
    clock.advance(6)
    assert cache.sweep() == 1
    assert list(cache.keys()) == ["new"]
    assert cache.created_at("new") == 1006


def test_cache_get_or_create_builds_once(clock):
    cache = ExpiringCache(ttl_seconds=10, sweep_interval_seconds=5, clock=clock)
    calls = []

    def factory():
        calls.append(1)
        return {"n": len(calls)}

    first = cache.get_or_create("k", factory)
    assert cache.get_or_create("k", factory) is first
    assert calls == [1]
    assert cache.pop("k") is first
    assert cache.pop("k") is None


def test_cache_requires_a_positive_ttl(clock):
    with pytest.raises(ValueError):
        ExpiringCache(ttl_seconds=0, sweep_interval_seconds=5, clock=clock)


# ---------------------------------------------------------------------------
# Context store
# ---------------------------------------------------------------------------


def test_history_is_capped(store):
    for index in range(25):
        store.add_message("s1", "user", f"message {index}")
    context = store.require("s1")
    assert len(context.messages) == 20
    assert context.messages[0].content == "message 5"
    assert [m.content for m in context.recent_messages(2)] == ["message 23", "message 24"]


def test_entities_keep_latest_value_and_recent_first_history(store):
    extractor = EntityExtractor()
    store.merge_entities("s1", extractor.extract("Maybe 15% or 20%"))
    context = store.merge_entities("s1", extractor.extract("Let's say 25%"))
    assert context.contextual_entities["percentage"] == 25.0
    assert context.entity_history["percentage"] == [25.0, 20.0, 15.0]


def test_user_turns_update_deal_state(store):
    _say(store, "s1", DEAL_MESSAGE)
    context = store.require("s1")
    assert context.current_intent == "case_creation"
    assert context.current_deal.describe() == "enterprise newBusiness $250,000 deal"
    assert context.current_deal.discount_percent == 30.0
    assert context.follow_up_expected is True
    assert context.profile.common_segments == ["enterprise"]


def test_deal_snapshot_agrees_with_the_latest_entities(store):
    _say(store, "s1", "Maybe 20% on the $100k enterprise renewal, actually make it 25%")
    context = store.require("s1")
    assert context.contextual_entities["percentage"] == 25.0
    assert context.current_deal.discount_percent == 25.0


def test_assistant_turns_do_not_change_state(store):
    store.add_message("s1", "assistant", "Here is what I found", MessageAnalyser().analyse(DEAL_MESSAGE))
    assert store.require("s1").current_deal is None


def test_references_resolve_to_the_current_deal(store):
    assert store.resolve_reference("missing", "Escalate that deal") == "Escalate that deal"
    _say(store, "s1", DEAL_MESSAGE)
    assert (
        store.resolve_reference("s1", "Can you escalate that deal?")
        == "Can you escalate enterprise newBusiness $250,000 deal?"
    )
    assert store.resolve_reference("s1", "What about the customer?") == (
        "What about enterprise customer?"
    )
    assert store.resolve_reference("s1", "Is this discount ok?") == "Is 30% discount ok?"
    assert store.resolve_reference("s1", "Nothing to resolve") == "Nothing to resolve"
    for text in ("Create the case", "Check the approval", "Update that account"):
        assert store.resolve_reference("s1", text) == text


def test_follow_up_detection(store, clock):
    assert store.is_follow_up("missing", "and the discount?") is False
    _say(store, "s1", DEAL_MESSAGE)
    assert store.is_follow_up("s1", "and the discount?") is True
    clock.advance(60)
    assert store.is_follow_up("s1", "ok thanks") is True
    clock.advance(25)
    store.get("s1")
    clock.advance(40)
    assert store.is_follow_up("s1", "ok thanks") is False


def test_pending_actions_are_capped(store):
    ids = [store.add_pending_action("s1", "create_case", f"Case {n}") for n in range(4)]
    context = store.require("s1")
    assert [action.id for action in context.pending_actions] == ids[1:]
    assert store.update_pending_action("s1", ids[3], "completed", result={"caseId": "X"})
    assert context.pending_actions[-1].status == "completed"
    assert [action.id for action in context.open_actions()] == ids[1:3]
    assert store.update_pending_action("s1", ids[0], "completed") is False
    assert store.update_pending_action("missing", ids[3], "completed") is False


def test_sessions_expire(store, clock):
    store.get_or_create("s1")
    clock.advance(61)
    assert store.get("s1") is None
    with pytest.raises(SessionNotFoundError):
        store.require("s1")


def test_clear_reports_whether_a_session_existed(store):
    store.get_or_create("s1")
    assert store.clear("s1") is True
    assert store.clear("s1") is False


def test_summary_and_stats(store, clock):
    _say(store, "s1", DEAL_MESSAGE)
    store.add_message("s1", "assistant", "x" * 150)
    clock.advance(12)

    summary = store.summary("s1")
    assert summary["sessionId"] == "s1"
    assert summary["messageCount"] == 2
    assert summary["durationSeconds"] == 12
    assert summary["currentIntent"] == "case_creation"
    assert summary["dealContext"]["dealValue"] == 250_000
    assert summary["keyEntities"]["segment"] == "enterprise"
    assert summary["recentMessages"][1]["content"] == "x" * 100 + "..."
    assert summary["userProfile"]["commonDealTypes"] == ["newBusiness"]

    stats = store.stats()
    assert stats["totalContexts"] == 1
    assert stats["averageMessages"] == 2
    assert stats["commonIntents"] == {"case_creation": 1}

    with pytest.raises(SessionNotFoundError):
        store.summary("missing")
