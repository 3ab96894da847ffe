import threading

import pytest

from handbook_rag.memory.session_store import InMemorySessionStore, Turn


@pytest.fixture
def store():
    return InMemorySessionStore()


def test_sessions_are_created_lazily_and_reused(store):
    assert len(store) == 0
    first = store.get("alice")
    assert store.get("alice") is first
    assert store.session_ids() == ["alice"]


def test_transcript_preserves_append_order(store):
    a = Turn(role="user", content="A")
    b = Turn(role="assistant", content="B")
    c = Turn(role="user", content="C")
    for turn in (a, b, c):
        store.append("s1", turn)
    assert store.transcript("s1") == (a, b, c)


def test_sessions_are_isolated(store):
    store.append("alice", Turn(role="user", content="secret"))
    assert store.transcript("bob") == ()
    assert [t.content for t in store.transcript("alice")] == ["secret"]


def test_transcript_is_a_copy(store):
    store.append("s1", Turn(role="user", content="hi"))
    snapshot = store.transcript("s1")
    store.append("s1", Turn(role="assistant", content="hello"))
    assert len(snapshot) == 1
    assert len(store.transcript("s1")) == 2


def test_turns_are_immutable():
    turn = Turn(role="user", content="hi")
    with pytest.raises(Exception):
        turn.content = "changed"


def test_invalid_role_rejected():
    with pytest.raises(ValueError):
        Turn(role="tool", content="x")


def test_append_exchange_adds_user_then_assistant(store):
    store.append_exchange("s1", Turn(role="user", content="q"), Turn(role="assistant", content="a"))
    assert [t.role for t in store.transcript("s1")] == ["user", "assistant"]


def test_concurrent_exchanges_never_interleave(store):
    def worker(n):
        for i in range(50):
            store.append_exchange(
                "shared",
                Turn(role="user", content=f"{n}-{i}"),
                Turn(role="assistant", content=f"{n}-{i}"),
            )

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    turns = store.transcript("shared")
    assert len(turns) == 400
    for user, assistant in zip(turns[::2], turns[1::2]):
        assert user.role == "user" and assistant.role == "assistant"
        assert user.content == assistant.content


def test_other_sessions_not_blocked_by_held_lock(store):
    done = threading.Event()

    with store.lock("alice"):
        t = threading.Thread(
            target=lambda: (store.append("bob", Turn(role="user", content="hi")), done.set())
        )
        t.start()
        assert done.wait(timeout=2)
        t.join()

    assert len(store.transcript("bob")) == 1
