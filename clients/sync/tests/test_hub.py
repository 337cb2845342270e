import logging

from chat_sync.hub import EventHub


def test_dispatch_reaches_only_matching_event():
    hub = EventHub()
    seen = []
    hub.subscribe("newMessage", lambda payload: seen.append(("a", payload)))
    hub.subscribe("getOnlineUsers", lambda payload: seen.append(("b", payload)))

    hub.dispatch("newMessage", {"_id": "m1"})

    assert seen == [("a", {"_id": "m1"})]


def test_unsubscribe_removes_single_listener():
    hub = EventHub()
    seen = []
    first = hub.subscribe("newMessage", lambda payload: seen.append("first"))
    hub.subscribe("newMessage", lambda payload: seen.append("second"))

    hub.unsubscribe(first)
    hub.unsubscribe(first)
    hub.dispatch("newMessage", None)

    assert seen == ["second"]
    assert first.active is False
    assert hub.listener_count("newMessage") == 1


def test_unsubscribe_all_deactivates_tokens():
    hub = EventHub()
    tokens = [hub.subscribe("newMessage", lambda payload: None) for _ in range(3)]

    hub.unsubscribe_all("newMessage")

    assert hub.listener_count("newMessage") == 0
    assert all(not token.active for token in tokens)


def test_listener_removed_mid_dispatch_is_not_called():
    hub = EventHub()
    seen = []
    second = None

    def first(payload):
        seen.append("first")
        hub.unsubscribe(second)

    hub.subscribe("newMessage", first)
    second = hub.subscribe("newMessage", lambda payload: seen.append("second"))

    hub.dispatch("newMessage", None)

    assert seen == ["first"]


def test_failing_listener_does_not_block_others(caplog):
    hub = EventHub()
    seen = []

    def broken(payload):
        raise RuntimeError("boom")

    hub.subscribe("newMessage", broken)
    hub.subscribe("newMessage", seen.append)

    with caplog.at_level(logging.ERROR, logger="chat_sync.hub"):
        hub.dispatch("newMessage", "payload")

    assert seen == ["payload"]
    assert "Listener for newMessage failed" in caplog.text

