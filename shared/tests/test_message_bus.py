"""Tests for command routing, event fan-out and the unit of work."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from shared.application.message_bus import MessageBus
from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class SomethingHappened(DomainEvent):
    name: str = ""


@dataclass
class DoSomething:
    value: int


def test_command_is_routed_to_its_handler():
    bus = MessageBus()
    bus.register_command_handler(DoSomething, lambda command: command.value * 2)

    assert bus.has_command_handler(DoSomething)
    assert bus.handle_command(DoSomething(21)) == 42


def test_unregistered_command_raises():
    with pytest.raises(ValueError):
        MessageBus().handle_command(DoSomething(1))


def test_second_command_handler_is_refused():
    bus = MessageBus()
    bus.register_command_handler(DoSomething, lambda command: None)

    with pytest.raises(ValueError):
        bus.register_command_handler(DoSomething, lambda command: None)


def test_handler_errors_propagate_from_commands():
    def fail(command):
        raise RuntimeError("boom")

    bus = MessageBus()
    bus.register_command_handler(DoSomething, fail)

    with pytest.raises(RuntimeError):
        bus.handle_command(DoSomething(1))


def test_failing_event_handler_does_not_stop_the_others():
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    def recorder(event):
        seen.append(event.name)

    bus = MessageBus()
    bus.register_event_handler(SomethingHappened, broken)
    bus.register_event_handler(SomethingHappened, recorder)
    bus.register_event_handler(SomethingHappened, recorder)

    bus.publish_events([SomethingHappened(name="first"), SomethingHappened(name="second")])

    assert seen == ["first", "second"]


@pytest.mark.django_db
def test_unit_of_work_publishes_after_commit(django_capture_on_commit_callbacks):
    seen = []
    bus = MessageBus()
    bus.register_event_handler(SomethingHappened, lambda event: seen.append(event.name))

    with django_capture_on_commit_callbacks(execute=True):
        with DjangoUnitOfWork(bus=bus) as uow:
            uow.add_events([SomethingHappened(name="committed")])
            assert seen == []

    assert seen == ["committed"]


@pytest.mark.django_db
def test_unit_of_work_discards_events_on_error(django_capture_on_commit_callbacks):
    seen = []
    bus = MessageBus()
    bus.register_event_handler(SomethingHappened, lambda event: seen.append(event.name))

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(RuntimeError):
            with DjangoUnitOfWork(bus=bus) as uow:
                uow.add_events([SomethingHappened(name="lost")])
                raise RuntimeError("boom")

    assert callbacks == []
    assert seen == []


def test_subscribers_to_the_base_event_see_everything():
    seen = []
    bus = MessageBus()
    bus.register_event_handler(DomainEvent, lambda event: seen.append(event.event_type))

    bus.publish_events([SomethingHappened(name="first")])

    assert seen == ["SomethingHappened"]


def test_event_to_dict_is_json_ready():
    event = SomethingHappened(name="first")

    data = event.to_dict()

    assert data["event_type"] == "SomethingHappened"
    assert data["event_id"] == str(event.event_id)
    assert data["occurred_at"] == event.occurred_at.isoformat()
    assert data["aggregate_id"] is None
    assert data["name"] == "first"
