"""Tests for the event dispatcher, event models and the consent audit log."""

from __future__ import annotations

from typing import List

import pytest

from cookie_consent.constants import ConsentEventTypes
from cookie_consent.consent.models import ConsentRecord
from cookie_consent.events import ConsentAuditLog, ConsentEvent, Event, EventDispatcher


class TestEventDispatcher:
    def setup_method(self) -> None:
        self.dispatcher = EventDispatcher()
        self.calls: List[str] = []

    def _listener(self, label: str):
        def listener(event: Event) -> None:
            self.calls.append(label)
        return listener

    def test_priority_order_with_stable_ties(self) -> None:
        self.dispatcher.on("demo", self._listener("low"), priority=-5)
        self.dispatcher.on("demo", self._listener("first"))
        self.dispatcher.on("demo", self._listener("high"), priority=10)
        self.dispatcher.on("demo", self._listener("second"))

        self.dispatcher.dispatch(Event("demo"))

        assert self.calls == ["high", "first", "second", "low"]

    def test_wildcard_listeners_run_first(self) -> None:
        self.dispatcher.on("demo", self._listener("named"), priority=100)
        self.dispatcher.on("*", self._listener("wildcard"))

        self.dispatcher.dispatch(Event("demo"))
        self.dispatcher.dispatch(Event("other"))

        assert self.calls == ["wildcard", "named", "wildcard"]

    def test_once_runs_a_single_time(self) -> None:
        self.dispatcher.once("demo", self._listener("once"))

        self.dispatcher.dispatch(Event("demo"))
        self.dispatcher.dispatch(Event("demo"))

        assert self.calls == ["once"]
        assert not self.dispatcher.has_listeners("demo")

    def test_off_removes_listener(self) -> None:
        listener = self._listener("gone")
        once_listener = self._listener("once-gone")
        self.dispatcher.on("demo", listener)
        self.dispatcher.once("demo", once_listener)
        self.dispatcher.on("demo", self._listener("kept"))

        self.dispatcher.off("demo", listener)
        self.dispatcher.off("demo", once_listener)
        self.dispatcher.dispatch(Event("demo"))

        assert self.calls == ["kept"]

    def test_off_without_callback_clears_event(self) -> None:
        self.dispatcher.on("demo", self._listener("a"))
        self.dispatcher.on("demo", self._listener("b"))

        self.dispatcher.off("demo")

        assert not self.dispatcher.has_listeners("demo")
        assert self.dispatcher.event_names() == []

    def test_stop_propagation(self) -> None:
        def stopper(event: Event) -> None:
            self.calls.append("stopper")
            event.stop_propagation()

        self.dispatcher.on("demo", stopper, priority=1)
        self.dispatcher.on("demo", self._listener("never"))

        event = self.dispatcher.dispatch(Event("demo"))

        assert event.propagation_stopped
        assert self.calls == ["stopper"]

    def test_listener_errors_propagate(self) -> None:
        def broken(event: Event) -> None:
            raise RuntimeError("listener failed")

        self.dispatcher.on("demo", broken)

        with pytest.raises(RuntimeError):
            self.dispatcher.dispatch(Event("demo"))

    def test_introspection(self) -> None:
        first = self._listener("a")
        self.dispatcher.on("demo", first)
        self.dispatcher.on("*", self._listener("w"))

        assert self.dispatcher.has_listeners("anything")
        assert self.dispatcher.listeners("demo")[-1] is first
        assert self.dispatcher.event_names() == ["demo"]

        self.dispatcher.clear()
        assert not self.dispatcher.has_listeners("demo")


class TestConsentEvent:
    def setup_method(self) -> None:
        previous = ConsentRecord(accepted_categories=["necessary"]).to_dict()
        self.record = ConsentRecord(
            accepted_categories=["necessary", "analytics"],
            rejected_categories=["marketing"],
            ip_address="203.0.113.77",
            previous_consent=previous,
        )

    def test_accessors(self) -> None:
        event = ConsentEvent(ConsentEventTypes.UPDATED, record=self.record)

        assert event.consent_id == self.record.consent_id
        assert event.accepted_categories == ["necessary", "analytics"]
        assert event.is_update()
        assert not event.is_first_consent()
        assert event.anonymized_ip == "203.0.113.0"
        assert event.proof == self.record.proof

    def test_log_dict_hides_raw_ip(self) -> None:
        event = ConsentEvent(ConsentEventTypes.GIVEN, record=self.record, additional_data={"source": "test"})

        data = event.to_log_dict()

        assert "203.0.113.77" not in str(data)
        assert data["ip_anonymized"] == "203.0.113.0"
        assert data["previous_consent_id"] == self.record.previous_consent["consent_id"]
        assert data["additional_data"] == {"source": "test"}


class TestConsentAuditLog:
    def setup_method(self) -> None:
        self.dispatcher = EventDispatcher()
        self.audit = ConsentAuditLog().attach(self.dispatcher)
        self.record = ConsentRecord(accepted_categories=["necessary"])

    def test_records_consent_lifecycle(self) -> None:
        self.dispatcher.dispatch(ConsentEvent(ConsentEventTypes.GIVEN, record=self.record))
        self.dispatcher.dispatch(ConsentEvent(ConsentEventTypes.WITHDRAWN, record=self.record))

        entries = self.audit.entries_for(self.record.consent_id)
        assert [entry.event_type for entry in entries] == [
            ConsentEventTypes.GIVEN,
            ConsentEventTypes.WITHDRAWN,
        ]
        assert all(entry.hash for entry in entries)
        assert self.audit.verify()

    def test_ignores_other_events(self) -> None:
        self.dispatcher.dispatch(Event("script.loaded"))

        assert self.audit.entries == []

    def test_detects_tampering(self) -> None:
        self.dispatcher.dispatch(ConsentEvent(ConsentEventTypes.GIVEN, record=self.record))
        self.dispatcher.dispatch(ConsentEvent(ConsentEventTypes.UPDATED, record=self.record))

        self.audit.entries[0].data["accepted_categories"] = ["necessary", "marketing"]

        assert not self.audit.verify()

    def test_bounded_log_keeps_newest_entries(self) -> None:
        audit = ConsentAuditLog(max_entries=2).attach(self.dispatcher)

        for event_name in (ConsentEventTypes.GIVEN, ConsentEventTypes.UPDATED, ConsentEventTypes.WITHDRAWN):
            self.dispatcher.dispatch(ConsentEvent(event_name, record=self.record))

        assert [entry.event_type for entry in audit.entries] == [
            ConsentEventTypes.UPDATED,
            ConsentEventTypes.WITHDRAWN,
        ]
        assert audit.hash_chain.chain_length == 3
        assert audit.verify()

        audit.entries[0].data["consent_method"] = "accept_all"
        assert not audit.verify()
