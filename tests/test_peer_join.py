"""Tests for random peer selection on join."""

from __future__ import annotations

import random
from collections import Counter

from conftest import RecordingHandle

from services.sync.peer_join import PeerJoinCoordinator


def _session(registry, ids):
    session = registry.get_session(registry.create_session({"current": 0, "length": 100}))
    handles = {}
    for connection_id in ids:
        handles[connection_id] = RecordingHandle()
        session.connections.attach(connection_id, handles[connection_id])
    return session, handles


def test_notifies_one_peer_and_not_requester(registry):
    session, handles = _session(registry, [1, 2])
    peer = PeerJoinCoordinator().request_join(session, 1)

    assert peer.id == 2
    assert handles[2].events == [("client_join", {})]
    assert handles[1].events == []


def test_requester_alone_is_noop(registry):
    session, handles = _session(registry, [1])
    assert PeerJoinCoordinator().request_join(session, 1) is None
    assert handles[1].events == []


def test_empty_session_is_noop(registry):
    session, _ = _session(registry, [])
    assert PeerJoinCoordinator().request_join(session, 5) is None


def test_closed_peers_are_pruned_and_skipped(registry):
    session, handles = _session(registry, [1, 2, 3])
    handles[2].closed = True
    handles[3].closed = True

    assert PeerJoinCoordinator().request_join(session, 1) is None
    assert [c.id for c in session.clients] == [1]


def test_selection_is_uniform(registry):
    session, _ = _session(registry, [1, 2, 3, 4])
    coordinator = PeerJoinCoordinator(choose=random.Random(1234).choice)
    trials = 3000

    counts = Counter(coordinator.request_join(session, 1).id for _ in range(trials))

    assert set(counts) == {2, 3, 4}
    for count in counts.values():
        assert abs(count / trials - 1 / 3) < 0.05
