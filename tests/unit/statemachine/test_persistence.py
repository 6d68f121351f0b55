"""Tests for state machine persistence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from choreo.core.orchestrator import OrchestratorContext
from choreo.core.statemachine import (
    AnimationStateMachine,
    InMemoryStore,
    JsonFileStore,
    MachineSnapshot,
    State,
    Transition,
)
from choreo.core.statemachine.persistence import sanitize_key

STATES = [State(id="idle"), State(id="active"), State(id="done")]
TRANSITIONS = [
    Transition(from_state="idle", event="start", to_state="active"),
    Transition(from_state="active", event="finish", to_state="done"),
]


def _machine(store: Any, key: str = "wizard") -> AnimationStateMachine:
    return AnimationStateMachine(
        STATES, TRANSITIONS, "idle", name="wizard", store=store, storage_key=key
    )


class _BrokenStore:
    def get(self, key: str) -> Any:
        raise OSError("disk on fire")

    def set(self, key: str, value: Any) -> None:
        raise OSError("disk on fire")

    def delete(self, key: str) -> None:
        pass


class TestInMemoryStore:
    def test_values_are_copied(self) -> None:
        store = InMemoryStore()
        value = {"items": [1]}
        store.set("k", value)
        value["items"].append(2)

        assert store.get("k") == {"items": [1]}
        assert store.keys() == ["k"]
        store.delete("k")
        assert store.get("k") is None


class TestJsonFileStore:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path / "state")
        store.set("choreo:state:menu", {"current_state": "open"})

        assert store.get("choreo:state:menu") == {"current_state": "open"}
        path = store.path_for("choreo:state:menu")
        assert path.name == "choreo_state_menu.json"
        assert json.loads(path.read_text()) == {"current_state": "open"}
        assert not list(path.parent.glob(".tmp-*"))

    def test_missing_key(self, tmp_path: Path) -> None:
        assert JsonFileStore(tmp_path).get("nothing") is None

    def test_delete(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.set("k", 1)
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None


def test_sanitize_key() -> None:
    assert sanitize_key("a/b c") == "a_b_c"
    assert sanitize_key("...") == "_"


class TestMachinePersistence:
    def test_transitions_persist_and_restore(self) -> None:
        store = InMemoryStore()
        machine = _machine(store)
        machine.set_data("step", 2)
        machine.send("start")

        restored = _machine(store)

        assert restored.state == "active"
        assert restored.previous_state == "idle"
        assert [r.event for r in restored.history] == ["start"]
        assert restored.get_data("step") == 2

    def test_json_file_store_round_trip(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        machine = _machine(store)
        machine.send("start")
        machine.send("finish")

        restored = _machine(JsonFileStore(tmp_path))

        assert restored.state == "done"
        assert len(restored.history) == 2

    def test_snapshot_with_unknown_state_ignored(self) -> None:
        store = InMemoryStore()
        store.set("wizard", MachineSnapshot(current_state="gone").model_dump(mode="json"))

        machine = _machine(store)

        assert machine.state == "idle"

    def test_malformed_snapshot_ignored(self) -> None:
        store = InMemoryStore()
        store.set("wizard", {"unexpected": True})

        assert _machine(store).state == "idle"

    def test_store_failures_are_not_raised(self) -> None:
        machine = _machine(_BrokenStore())

        assert machine.send("start") is True
        assert machine.state == "active"
        assert machine.persist() is False
        assert machine.restore() is False

    def test_no_store_disables_persistence(self) -> None:
        machine = AnimationStateMachine(STATES, TRANSITIONS, "idle")
        assert not machine.persistence_enabled
        assert machine.persist() is False

    def test_context_uses_configured_key_prefix(self, context: OrchestratorContext) -> None:
        store = InMemoryStore()
        machine = context.create_state_machine(
            "wizard", STATES, TRANSITIONS, "idle", store=store
        )
        machine.send("start")

        assert store.keys() == ["choreo:state:wizard"]
        assert store.get("choreo:state:wizard")["current_state"] == "active"
