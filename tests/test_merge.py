"""Tests for key matching and the merge reconciler."""

import pytest

from kcollection import Collection, KeyMatcher, MergeResult, Model
from kcollection.matching import (
    MatchStrategy,
    MergeKeysMatchStrategy,
    PrimaryKeyMatchStrategy,
    get_strategy,
    list_strategies,
    read_value,
    register_strategy,
)
from tests.models import Contact, Person


@register_strategy("casefold_email")
class CasefoldEmailStrategy(MatchStrategy):
    def __init__(self, **kwargs):
        pass

    @property
    def name(self) -> str:
        return "casefold_email"

    def usable(self, incoming):
        return bool(read_value(incoming, "email"))

    def matches(self, incoming, candidate):
        other = read_value(candidate, "email")
        return bool(other) and read_value(incoming, "email").casefold() == other.casefold()


class Subscriber(Model):
    match_strategies = ("casefold_email",)


@pytest.fixture
def people(store):
    return Collection(
        [
            {"id": 1, "first": "Ann", "last": "Lee", "age": 30},
            {"id": 2, "first": "Bo", "last": "Kim", "age": 41},
        ],
        store=store,
        model=Person,
    )


class TestMatchStrategies:
    """Tests for individual matching strategies."""

    def test_primary_key_match(self):
        strategy = PrimaryKeyMatchStrategy(primary_key="email")

        assert strategy.matches({"email": "a@x"}, {"email": "a@x"})
        assert not strategy.matches({"email": "a@x"}, {"email": "b@x"})
        assert not strategy.usable({"name": "no key"})

    def test_undefined_primary_key_never_matches(self):
        strategy = PrimaryKeyMatchStrategy()

        assert not strategy.matches({}, {})
        assert not strategy.matches({"id": None}, {"id": None})

    def test_merge_keys_match_all(self):
        strategy = MergeKeysMatchStrategy(merge_keys=["first", "last"])

        assert strategy.matches({"first": "A", "last": "B"}, {"first": "A", "last": "B", "x": 1})
        assert not strategy.matches({"first": "A", "last": "C"}, {"first": "A", "last": "B"})

    def test_empty_merge_keys_never_match(self):
        strategy = MergeKeysMatchStrategy(merge_keys=[])

        assert not strategy.usable({"first": "A"})
        assert not strategy.matches({"first": "A"}, {"first": "A"})

    def test_strategies_read_models(self):
        strategy = PrimaryKeyMatchStrategy()

        assert strategy.matches(Contact({"id": 5}), {"id": 5})

    def test_registry(self):
        assert "primary_key" in list_strategies()
        assert "merge_keys" in list_strategies()
        assert get_strategy("merge_keys") is MergeKeysMatchStrategy

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            get_strategy("fuzzy")


class TestKeyMatcher:
    """Tests for KeyMatcher."""

    def test_for_model(self):
        matcher = KeyMatcher.for_model(Person)

        assert matcher.strategies[0].primary_key == "id"
        assert matcher.strategies[1].merge_keys == ["first", "last"]

    def test_find_first_candidate(self):
        matcher = KeyMatcher()
        pool = [{"id": 1}, {"id": 2}, {"id": 2}]

        assert matcher.find({"id": 2}, pool) == 1
        assert matcher.find({"id": 3}, pool) is None

    def test_keyless_record_is_unusable(self):
        matcher = KeyMatcher(merge_keys=["first"])

        assert not matcher.usable({"age": 3})
        assert matcher.usable({"id": 3})
        assert matcher.find({"age": 3}, [{"age": 3}]) is None

    def test_either_identity_matches(self):
        matcher = KeyMatcher(merge_keys=["first", "last"])
        pool = [{"id": 1, "first": "Ann", "last": "Lee"}]

        assert matcher.find({"id": 1}, pool) == 0
        assert matcher.find({"first": "Ann", "last": "Lee"}, pool) == 0
        assert matcher.find({"first": "Ann", "last": "Ray"}, pool) is None

    def test_strategies_built_from_registry(self):
        matcher = KeyMatcher(strategies=("merge_keys",), merge_keys=["first"])

        assert [s.name for s in matcher.strategies] == ["merge_keys"]
        assert matcher.find({"id": 1, "first": "Bo"}, [{"id": 1, "first": "Ann"}]) is None

    def test_model_selects_strategies(self):
        matcher = KeyMatcher.for_model(Subscriber)

        assert [s.name for s in matcher.strategies] == ["casefold_email"]
        assert matcher.find({"email": "ANN@x.org"}, [{"email": "bo@x.org"}, {"email": "ann@x.org"}]) == 1

    def test_unknown_strategy_name(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            KeyMatcher(strategies=("fuzzy",))


class TestMerge:
    """Tests for Collection.merge()."""

    def test_merge_updates_raw_slot_without_materializing(self, contacts, store, recorder):
        events = recorder(contacts)

        result = contacts.merge([{"id": 2, "status": "open"}])

        assert result == MergeResult(matched=1, appended=0, added=[])
        assert store.records == {}
        assert contacts.raw()[1] == {"id": 2, "name": "Bob", "status": "open"}
        assert events.events == []

    def test_merge_appends_unmatched(self, contacts, recorder):
        events = recorder(contacts)

        result = contacts.merge([{"id": 1, "name": "Alicia"}, {"id": 4, "name": "Dan"}])

        assert result.matched == 1
        assert result.appended == 1
        assert result.added == [3]
        assert [r.get("name") for r in contacts] == ["Alicia", "Bob", "Carol", "Dan"]
        assert events.of("add") == [{"records": [3]}]
        assert events.lengths == [(3, 4)]

    def test_merge_updates_materialized_record(self, contacts):
        record = contacts.at(0)
        changes = []
        record.add_listener("change", lambda target, event, args: changes.append(args["changed"]))

        contacts.merge([{"id": 1, "name": "Alicia", "status": "open"}])

        assert contacts.at(0) is record
        assert record.get("name") == "Alicia"
        assert changes == [{"name": ("Alice", "Alicia")}]

    def test_merge_with_registered_strategy(self, store):
        subscribers = Collection([{"id": 1, "email": "Ann@x.org", "plan": "free"}], store=store, model=Subscriber)

        result = subscribers.merge([{"id": 7, "email": "ann@X.org", "plan": "pro"}])

        assert result.matched == 1
        assert subscribers.raw() == [{"id": 7, "email": "ann@X.org", "plan": "pro"}]

    def test_merge_applies_model_parse(self, store):
        class Lowered(Model):
            def parse(self, data):
                if "email" in data:
                    data["email"] = data["email"].lower()
                return data

        collection = Collection([{"id": 1, "email": "a@x"}], store=store, model=Lowered)
        record = collection.at(0)

        collection.merge({"id": 1, "email": "NEW@X"})

        assert record.get("email") == "new@x"

    def test_merge_model_instances(self, contacts):
        incoming = Contact({"id": 3, "name": "Caroline"})

        result = contacts.merge([incoming])

        assert result.matched == 1
        assert contacts.at(2).get("name") == "Caroline"
        assert contacts.at(2) is not incoming

    def test_merge_by_merge_keys(self, people):
        result = people.merge([{"first": "Bo", "last": "Kim", "age": 42}])

        assert result.matched == 1
        assert people.length == 2
        assert people.at(1).get("age") == 42
        assert people.at(1).get("id") == 2

    def test_each_local_record_absorbs_one_incoming(self, contacts):
        result = contacts.merge([{"id": 1, "name": "First"}, {"id": 1, "name": "Second"}])

        assert result.matched == 1
        assert result.appended == 1
        assert contacts.at(0).get("name") == "First"
        assert contacts.at(3).get("name") == "Second"

    def test_keyless_records_are_appended(self, contacts):
        result = contacts.merge([{"name": "Nobody"}])

        assert result.appended == 1
        assert contacts.length == 4

    def test_merge_is_idempotent(self, contacts, sample_data, recorder):
        contacts.at(0)
        events = recorder(contacts)

        contacts.merge([dict(item) for item in sample_data])
        contacts.merge([dict(item) for item in sample_data])

        assert contacts.length == 3
        assert events.events == []
        assert events.lengths == []

    def test_merge_nothing(self, contacts, recorder):
        events = recorder(contacts)

        assert contacts.merge([]) == MergeResult()
        assert contacts.merge(None) == MergeResult()
        assert events.events == []

    def test_merge_into_empty_collection(self, store):
        collection = Collection(store=store, model=Person)

        result = collection.merge([{"first": "Ann", "last": "Lee"}, {"first": "Ann", "last": "Lee"}])

        assert result.matched == 0
        assert result.added == [0, 1]

    def test_merge_result_to_dict(self):
        result = MergeResult(matched=2, appended=1, added=[5])

        assert result.to_dict() == {"matched": 2, "appended": 1, "added": [5]}
