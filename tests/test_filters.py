"""Tests for the filter overlay."""

import pytest

from kcollection import Collection, FilterResult, FilterState, where
from tests.models import Contact


def only_open(collection):
    return FilterResult(records=collection.filter(lambda r: r.get("status") == "open"))


@pytest.fixture
def filtered_contacts(store, sample_data):
    return Collection(sample_data, store=store, model=Contact, filters={"open": only_open})


class TestFilterResult:
    """Tests for FilterResult and predicate return values."""

    def test_records_imply_applied(self):
        result = FilterResult(records=(1, 2))

        assert result.applied is True
        assert result.records == [1, 2]

    def test_default_is_not_applied(self):
        result = FilterResult()

        assert result.applied is False
        assert result.records is None

    def test_coerce(self):
        existing = FilterResult(applied=True)

        assert FilterResult.coerce(existing) is existing
        assert FilterResult.coerce(True) == FilterResult(applied=True)
        assert FilterResult.coerce(None) == FilterResult()
        assert FilterResult.coerce(False) == FilterResult()
        assert FilterResult.coerce([]) == FilterResult(records=[])
        assert FilterResult.coerce(()) == FilterResult(records=[])
        assert FilterResult.coerce(["a"]).records == ["a"]


class TestWhere:
    """Tests for the where() predicate builder."""

    def test_where_keeps_matching_records(self, contacts):
        result = where(status="open")(contacts)

        assert [r.get("id") for r in result.records] == [1, 3]

    def test_where_multiple_criteria(self, contacts):
        result = where(status="open", name="Carol")(contacts)

        assert [r.get("id") for r in result.records] == [3]

    def test_where_name(self):
        assert where(b=1, a=2).__name__ == "where_a_b"
        assert where().__name__ == "where_all"


class TestApplyFilter:
    """Tests for activating and clearing filters."""

    def test_activate_filter(self, filtered_contacts, recorder):
        events = recorder(filtered_contacts)

        filtered_contacts.set("active_filter", "open")

        assert filtered_contacts.length == 2
        assert filtered_contacts.filtered is True
        assert filtered_contacts.filter_state is FilterState.FILTERED
        assert [r.get("id") for r in filtered_contacts] == [1, 3]
        assert events.lengths == [(3, 2)]
        assert events.names() == ["reset", "filter"]

    def test_reset_restores_unfiltered_data(self, filtered_contacts, recorder):
        filtered_contacts.set("active_filter", "open")
        events = recorder(filtered_contacts)

        filtered_contacts.reset()

        assert filtered_contacts.length == 3
        assert filtered_contacts.filtered is False
        assert [r.get("id") for r in filtered_contacts] == [1, 2, 3]
        assert events.lengths == [(2, 3)]
        assert events.names() == ["reset"]

    def test_identity_survives_restore(self, filtered_contacts):
        filtered_contacts.set("active_filter", "open")
        first = filtered_contacts.at(0)

        filtered_contacts.clear_filter()

        assert filtered_contacts.at(0) is first
        assert filtered_contacts.active_filter == ""

    def test_unfiltered_reset_is_noop(self, contacts, recorder):
        events = recorder(contacts)

        contacts.reset()

        assert events.events == []
        assert contacts.length == 3

    def test_reset_with_records_outside_filter(self, contacts, recorder):
        events = recorder(contacts)

        contacts.reset([{"id": 9}])

        assert contacts.length == 1
        assert contacts.filtered is False
        assert events.lengths == [(3, 1)]
        assert events.of("reset") == [{"records": [{"id": 9}]}]

    def test_unknown_filter_name_restores(self, filtered_contacts):
        filtered_contacts.set("active_filter", "open")

        filtered_contacts.set("active_filter", "missing")

        assert filtered_contacts.filtered is False
        assert filtered_contacts.length == 3

    def test_filter_on_empty_collection(self, store):
        collection = Collection(store=store, filters={"open": only_open})

        collection.set("active_filter", "open")

        assert collection.filtered is False
        assert collection.length == 0

    def test_active_filter_at_construction(self, store, sample_data):
        collection = Collection(
            sample_data,
            store=store,
            filters={"open": where(status="open")},
            active_filter="open",
        )

        assert collection.filtered is True
        assert collection.length == 2

    def test_index_of_searches_visible_records(self, filtered_contacts):
        second = filtered_contacts.at(1)
        filtered_contacts.set("active_filter", "open")

        assert filtered_contacts.index_of(second) == -1
        filtered_contacts.clear_filter()
        assert filtered_contacts.index_of(second) == 1


class TestPredicateConventions:
    """Tests for the ways a predicate can report its outcome."""

    def test_predicate_resets_itself_and_returns_true(self, store, sample_data):
        def closed(collection):
            collection.reset(collection.filter(lambda r: r.get("status") == "closed"))
            return True

        collection = Collection(sample_data, store=store, filters={"closed": closed})
        collection.set("active_filter", "closed")

        assert collection.filtered is True
        assert [r.get("id") for r in collection] == [2]

    def test_predicate_returning_list(self, store, sample_data):
        collection = Collection(
            sample_data,
            store=store,
            filters={"first": lambda c: [c.at(0)]},
        )
        collection.set("active_filter", "first")

        assert collection.filtered is True
        assert collection.length == 1

    def test_predicate_matching_nothing_empties_view(self, store, sample_data):
        collection = Collection(
            sample_data,
            store=store,
            filters={"none": lambda c: c.filter(lambda r: r.get("status") == "archived")},
        )
        collection.set("active_filter", "none")

        assert collection.filtered is True
        assert collection.length == 0

        collection.clear_filter()
        assert collection.length == 3

    def test_refilter_to_nothing_while_filtered(self, store, sample_data):
        wanted = {"status": "open"}

        def by_status(collection):
            return collection.filter(lambda r: r.get("status") == wanted["status"])

        collection = Collection(sample_data, store=store, filter_props="mode", filters={"status": by_status})
        collection.set("active_filter", "status")
        assert collection.length == 2

        wanted["status"] = "archived"
        collection.set("mode", "archived")

        assert collection.filtered is True
        assert collection.length == 0

    def test_applied_without_reset_is_not_filtered(self, store, sample_data, recorder):
        collection = Collection(sample_data, store=store, filters={"noop": lambda c: True})
        events = recorder(collection)

        collection.set("active_filter", "noop")

        assert collection.filtered is False
        assert collection.length == 3
        assert events.names() == ["filter"]

    def test_falsy_result_clears_previous_filter(self, store, sample_data):
        state = {"on": True}

        def toggled(collection):
            if state["on"]:
                return only_open(collection)
            return None

        collection = Collection(sample_data, store=store, filter_props="mode", filters={"toggled": toggled})
        collection.set("active_filter", "toggled")
        assert collection.length == 2

        state["on"] = False
        collection.set("mode", "off")

        assert collection.filtered is False
        assert collection.length == 3

    def test_predicate_sees_filtering_state(self, store, sample_data):
        seen = []

        def spy(collection):
            seen.append(collection.filter_state)
            return None

        collection = Collection(sample_data, store=store, filters={"spy": spy})
        collection.set("active_filter", "spy")

        assert seen == [FilterState.FILTERING]
        assert collection.filter_state is FilterState.UNFILTERED

    def test_predicate_error_rolls_back(self, store, sample_data, recorder):
        def broken(collection):
            collection.reset([])
            raise RuntimeError("predicate failed")

        collection = Collection(sample_data, store=store, filters={"broken": broken})
        events = recorder(collection)

        collection.set("active_filter", "broken")

        assert collection.length == 3
        assert collection.filtered is False
        assert collection.filter_state is FilterState.UNFILTERED
        assert events.lengths == []
        errors = store.get_errors()
        assert len(errors) == 1
        assert errors[0].event == "filter"
        assert "predicate failed" in errors[0].error

    def test_reentrant_filter_is_ignored(self, store, sample_data):
        calls = []

        def reentrant(collection):
            calls.append(1)
            collection._filter_content()
            return only_open(collection)

        collection = Collection(sample_data, store=store, filters={"again": reentrant})
        collection.set("active_filter", "again")

        assert calls == [1]
        assert collection.length == 2


class TestFilterProps:
    """Tests for properties that re-run the active filter."""

    def test_filter_prop_change_reapplies(self, store, sample_data, recorder):
        class ByStatus(Collection):
            model = Contact
            filter_props = "wanted"
            wanted = "open"

            def by_status(self):
                return FilterResult(records=self.filter(lambda r: r.get("status") == self.wanted))

            filters = {"status": by_status}

        collection = ByStatus(sample_data, store=store, active_filter="status")
        assert [r.get("id") for r in collection] == [1, 3]
        events = recorder(collection)

        collection.set("wanted", "closed")

        assert [r.get("id") for r in collection] == [2]
        assert events.lengths == [(2, 1)]
        assert events.names() == ["reset", "filter"]

        collection.clear_filter()
        assert [r.get("id") for r in collection] == [1, 2, 3]

    def test_filter_props_from_constructor(self, store, sample_data):
        collection = Collection(sample_data, store=store, filter_props=["owner", "tag"])

        assert collection.filter_props == ("owner", "tag")


class TestSubclassFilters:
    """Tests for filters and filter_props inherited through subclasses."""

    def test_filters_accumulate(self):
        class Base(Collection):
            filters = {"open": where(status="open")}
            filter_props = "owner"

        class Child(Base):
            filters = {"closed": where(status="closed")}
            filter_props = ("status", "owner")

        assert set(Child.filters) == {"open", "closed"}
        assert Child.filter_props == ("owner", "status")
        assert set(Base.filters) == {"open"}
        assert Collection.filters == {}

    def test_instance_filters_extend_class_filters(self, store):
        class Base(Collection):
            filters = {"open": where(status="open")}

        collection = Base(store=store, filters={"closed": where(status="closed")})

        assert set(collection.filters) == {"open", "closed"}
        assert set(Base.filters) == {"open"}


class TestMutationWhileFiltered:
    """Tests for mutations restoring the unfiltered data first."""

    def test_add_restores_first(self, filtered_contacts):
        filtered_contacts.set("active_filter", "open")

        filtered_contacts.add({"id": 4, "status": "closed"})

        assert filtered_contacts.filtered is False
        assert [r.get("id") for r in filtered_contacts] == [1, 2, 3, 4]

    def test_remove_restores_first(self, filtered_contacts):
        second = filtered_contacts.at(1)
        filtered_contacts.set("active_filter", "open")

        removed = filtered_contacts.remove(second)

        assert removed == {1: second}
        assert filtered_contacts.length == 2

    def test_merge_restores_first(self, filtered_contacts):
        filtered_contacts.set("active_filter", "open")

        filtered_contacts.merge([{"id": 2, "name": "Robert"}])

        assert filtered_contacts.filtered is False
        assert filtered_contacts.at(1).get("name") == "Robert"
