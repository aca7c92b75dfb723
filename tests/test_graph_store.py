from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from engine.errors import (
    AlertNotFoundError,
    NodeNotFoundError,
    RelationNotFoundError,
    UpstreamReadError,
)
from engine.graph_store import GraphStore, edge_from_row
from engine.contradiction_engine import classify_contradiction
from engine.config import ContradictionDetectionConfig
from models.base import init_db, utcnow
from models.enums import ControlType, RelationType, SystemClass
from models.homeostat import SourceReliability


@pytest.fixture
def session():
    Session = init_db("sqlite:///:memory:")
    session = Session()
    yield session
    session.close()


@pytest.fixture
def store(session):
    return GraphStore(session)


def test_add_object_normalizes_energy_profile(store):
    obj = store.add_object(
        "Trade Union",
        system_class="heteronomous_system",
        control_type="ideological",
        energy={"available_power": 1.5},
    )

    assert obj.system_class == SystemClass.HETERONOMOUS.value
    assert obj.control_system_type == ControlType.IDEOLOGICAL.value
    assert obj.energy_params == {"working_power": 0.0, "idle_power": 0.0, "available_power": 1.5}

    node = store.list_nodes()[0]
    assert node.id == obj.id
    assert node.available_power == pytest.approx(1.5)
    assert node.system_class == SystemClass.HETERONOMOUS


def test_add_object_rejects_unknown_class(store):
    with pytest.raises(ValueError):
        store.add_object("Bad", system_class="alien")


def test_add_correlation_requires_known_objects(store):
    a = store.add_object("A")

    with pytest.raises(NodeNotFoundError):
        store.add_correlation(a.id, "missing", "supply", impact_factor=0.5)


def test_add_correlation_clamps_and_validates(store):
    a = store.add_object("A")
    b = store.add_object("B")

    row = store.add_correlation(a.id, b.id, "supply", impact_factor=1.4, certainty_score=-0.1)
    assert row.impact_factor == 1.0
    assert row.certainty_score == 0.0

    with pytest.raises(ValueError):
        store.add_correlation(a.id, b.id, "teleport", impact_factor=0.5)


def test_uncommitted_correlation_is_undone_by_rollback(store, session):
    a = store.add_object("A")
    b = store.add_object("B")

    pending = store.add_correlation(a.id, b.id, "supply", impact_factor=0.5, commit=False)
    assert [e.id for e in store.list_active_edges()] == [pending.id]

    session.rollback()
    assert store.list_active_edges() == []


def test_list_active_edges_skips_superseded(store):
    a = store.add_object("A")
    b = store.add_object("B")
    old = store.add_correlation(a.id, b.id, "supply", impact_factor=0.5)
    new = store.add_correlation(a.id, b.id, "supply", impact_factor=0.6)

    retired = store.supersede_correlation(old.id, superseded_by=new.id)

    assert retired.superseded_by == new.id
    assert retired.superseded_at is not None
    assert [e.id for e in store.list_active_edges()] == [new.id]
    with pytest.raises(ValueError):
        store.supersede_correlation(old.id)


def test_list_prior_edges_filters_pair_window_and_orders_newest_first(store):
    a = store.add_object("A")
    b = store.add_object("B")
    now = utcnow()
    ancient = store.add_correlation(a.id, b.id, "supply", 0.5, created_at=now - timedelta(days=500))
    older = store.add_correlation(a.id, b.id, "supply", 0.5, created_at=now - timedelta(days=10))
    newer = store.add_correlation(a.id, b.id, "drain", 0.5, created_at=now - timedelta(days=1))
    store.add_correlation(b.id, a.id, "supply", 0.5, created_at=now - timedelta(days=1))

    prior = store.list_prior_edges(a.id, b.id, since=now - timedelta(days=365))

    assert [e.id for e in prior] == [newer.id, older.id]
    assert ancient.id not in {e.id for e in prior}
    assert prior[0].relation_type == RelationType.DRAIN

    bounded = store.list_prior_edges(a.id, b.id, since=now - timedelta(days=365), before=older.created_at)
    assert [e.id for e in bounded] == [older.id]
    excluded = store.list_prior_edges(a.id, b.id, since=now - timedelta(days=365), exclude_id=newer.id)
    assert [e.id for e in excluded] == [older.id]


def test_read_failure_is_wrapped(store, session, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "query", broken_query)

    with pytest.raises(UpstreamReadError) as excinfo:
        store.list_active_edges()
    assert excinfo.value.retryable
    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_penalize_source_creates_then_decrements(store, session):
    assert store.penalize_source("wire-a", 0.1, initial_reliability=0.5) == pytest.approx(0.4)
    first_seen = session.get(SourceReliability, "wire-a").last_verified_at

    assert store.penalize_source("wire-a", 0.1) == pytest.approx(0.3)
    record = store.get_source_reliability("wire-a")
    assert record.reliability_index == pytest.approx(0.3)
    assert record.last_verified_at >= first_seen

    assert store.penalize_source("wire-a", 0.5) == 0.0
    assert store.get_source_reliability("unknown") is None


def test_alert_lifecycle(store):
    a = store.add_object("A")
    b = store.add_object("B")
    old = edge_from_row(store.add_correlation(a.id, b.id, "support", 0.9, source_name="wire-a"))
    new = edge_from_row(store.add_correlation(a.id, b.id, "oppose", 0.3, source_name="wire-a"))
    contradiction = classify_contradiction(new, old, ContradictionDetectionConfig())

    alert = store.insert_alert(contradiction)

    assert [x.id for x in store.list_alerts(status="active")] == [alert.id]
    assert alert.title == "Contradiction: narrative_reversal"
    assert alert.source_name == "wire-a"

    resolved = store.update_alert_status(alert.id, "resolved", resolved_by="analyst-1")
    assert resolved.status == "resolved"
    assert resolved.resolved_by == "analyst-1"
    assert resolved.resolved_at is not None
    assert store.list_alerts(status="active") == []
    assert len(store.list_alerts()) == 1

    with pytest.raises(ValueError):
        store.update_alert_status(alert.id, "dismissed")
    with pytest.raises(ValueError):
        store.update_alert_status(alert.id, "active")
    with pytest.raises(AlertNotFoundError):
        store.update_alert_status("missing", "dismissed")


def test_unknown_correlation_is_not_found(store):
    with pytest.raises(RelationNotFoundError):
        store.get_correlation("missing")
    with pytest.raises(LookupError):
        store.supersede_correlation("missing")


def test_alert_read_failure_is_wrapped(store, session, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "query", broken_query)

    with pytest.raises(UpstreamReadError):
        store.list_alerts(status="active")
