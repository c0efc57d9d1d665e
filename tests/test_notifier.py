"""Observable value and list tests."""

import logging

import pytest

from disputes.notifier import ObservableList, ObservableValue, SubscriberError


class TestObservableValue:

    def test_get_initial(self):
        assert ObservableValue(False).get() is False

    def test_delivery_in_registration_order(self):
        value = ObservableValue(False)
        calls = []
        value.subscribe(lambda v: calls.append(("first", v)))
        value.subscribe(lambda v: calls.append(("second", v)))
        value.subscribe(lambda v: calls.append(("third", v)))

        value.set(True)

        assert calls == [("first", True), ("second", True), ("third", True)]

    def test_delivered_before_set_returns(self):
        value = ObservableValue(0)
        seen = []
        value.subscribe(lambda v: seen.append(v))
        value.set(5)
        assert seen == [5]

    def test_no_coalescing(self):
        value = ObservableValue(0)
        seen = []
        value.subscribe(seen.append)
        for i in (1, 1, 2, 2, 3):
            value.set(i)
        assert seen == [1, 1, 2, 2, 3]

    def test_subscribe_as_decorator(self):
        value = ObservableValue("a")
        seen = []

        @value.subscribe
        def on_change(v):
            seen.append(v)

        value.set("b")
        assert seen == ["b"]
        assert callable(on_change)

    def test_unsubscribe(self):
        value = ObservableValue(0)
        seen = []
        value.subscribe(seen.append)
        assert value.unsubscribe(seen.append) is True
        value.set(1)
        assert seen == []
        assert value.unsubscribe(seen.append) is False

    def test_failing_subscriber_does_not_stop_delivery(self):
        errors = []
        value = ObservableValue(0, name="test.value", on_error=errors.append)
        seen = []

        def broken(v):
            raise RuntimeError("subscriber bug")

        value.subscribe(broken)
        value.subscribe(seen.append)
        value.set(1)

        assert seen == [1]
        assert value.get() == 1
        assert len(errors) == 1
        error = errors[0]
        assert isinstance(error, SubscriberError)
        assert error.source == "test.value"
        assert error.value == 1
        assert isinstance(error.cause, RuntimeError)

    def test_failing_subscriber_logged_by_default(self, caplog):
        value = ObservableValue(0, name="logged.value")
        value.subscribe(lambda v: 1 / 0)
        with caplog.at_level(logging.ERROR, logger="disputes.notifier"):
            value.set(1)
        assert any("logged.value" in r.getMessage() for r in caplog.records)
        assert caplog.records[-1].exc_info is not None

    def test_subscribe_during_delivery_applies_next_round(self):
        value = ObservableValue(0)
        late = []

        def add_late(v):
            value.subscribe(late.append)

        value.subscribe(add_late)
        value.set(1)
        assert late == []
        value.set(2)
        assert late == [2]

    def test_read_only_view(self):
        value = ObservableValue(1, name="ro")
        view = value.read_only()
        seen = []
        view.subscribe(seen.append)
        value.set(2)
        assert view.get() == 2
        assert seen == [2]
        assert view.name == "ro"
        assert view.subscriber_count == 1
        assert not hasattr(view, "set")
        with pytest.raises(AttributeError):
            view.set(3)  # type: ignore[attr-defined]


class TestObservableList:

    def test_append_notifies_with_item(self):
        items = ObservableList(["a"])
        seen = []
        items.subscribe(seen.append)
        items.append("b")
        assert seen == ["b"]
        assert items.items() == ("a", "b")
        assert len(items) == 2
        assert "b" in items

    def test_initial_is_copied(self):
        initial = ["a"]
        items = ObservableList(initial)
        items.append("b")
        assert initial == ["a"]

    def test_read_only_view(self):
        items = ObservableList()
        view = items.read_only()
        items.append(1)
        assert list(view) == [1]
        assert view.items() == (1,)
        assert 1 in view
        assert len(view) == 1
        assert not hasattr(view, "append")
