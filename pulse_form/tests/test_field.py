from pulse_form.field import FieldStore
from pulse_form.reactive import Effect, flush_effects


def test_register_seeds_from_initial_value():
    store = FieldStore({"addresses": [{"street": "Main"}]})
    record = store.register_field("addresses.[0].street")
    assert record.value() == "Main"
    assert record.error() is None
    assert record.touched() is False
    assert record.is_dirty() is False


def test_register_is_idempotent():
    store = FieldStore({"a": {"b": 1}})
    first = store.register_field("a.b")
    store.write_value(first, 2)
    second = store.register_field("a.b")
    assert second is first
    assert second.value() == 2
    assert second.is_dirty() is True


def test_registry_keys_by_raw_string():
    store = FieldStore({"items": [1]})
    dotted = store.register_field("items.[0]")
    attached = store.register_field("items[0]")
    assert dotted is not attached
    assert set(store.fields) == {"items.[0]", "items[0]"}


def test_segment_lists_are_keyed_by_canonical_string():
    store = FieldStore({"items": [{"x": 1}]})
    record = store.register_field(["items", 0, "x"])
    assert record.name == "items.[0].x"
    assert store.register_field("items.[0].x") is record


def test_write_value_updates_snapshot_and_flags():
    store = FieldStore({"addresses": [{"street": "Main", "city": "Springfield"}]})
    record = store.register_field("addresses.[0].street")
    store.write_value(record, "Elm")

    assert record.value() == "Elm"
    assert record.touched() is True
    assert record.is_dirty() is True
    assert store.values == {"addresses": [{"street": "Elm", "city": "Springfield"}]}
    # The initial value is left alone
    assert store.initial["addresses"][0]["street"] == "Main"


def test_writing_the_baseline_back_clears_dirty():
    store = FieldStore({"name": "Ada"})
    record = store.register_field("name")
    store.write_value(record, "Grace")
    assert record.is_dirty() is True
    store.write_value(record, "Ada")
    assert record.is_dirty() is False


def test_dirty_compares_structurally():
    store = FieldStore({"tags": ["a", "b"]})
    record = store.register_field("tags")
    store.write_value(record, ["a", "b"])
    assert record.is_dirty() is False
    store.write_value(record, ["a"])
    assert record.is_dirty() is True


def test_write_creates_missing_containers():
    store = FieldStore()
    record = store.register_field("profile.links.[1]")
    assert record.value() is None
    store.write_value(record, "https://example.com")
    assert store.values == {"profile": {"links": [None, "https://example.com"]}}


def test_related_fields_follow_writes():
    store = FieldStore({"address": {"street": "Main"}})
    parent = store.register_field("address")
    child = store.register_field("address.street")
    seen = []
    Effect(lambda: seen.append(parent.value()), name="parent_watcher")
    flush_effects()

    store.write_value(child, "Elm")
    assert parent.value() == {"street": "Elm"}
    assert seen[-1] == {"street": "Elm"}

    store.write_value(parent, {"street": "Oak"})
    assert child.value() == "Oak"


def test_reset_restores_values_and_flags():
    store = FieldStore({"name": "Ada"})
    record = store.register_field("name")
    store.write_value(record, "Grace")
    record.error.write("bad")

    store.reset({"name": "Ada"})
    assert record.value() == "Ada"
    assert record.is_dirty() is False
    assert record.touched() is False
    assert record.error() is None


def test_reset_keeps_selected_flags():
    store = FieldStore({"name": "Ada"})
    record = store.register_field("name")
    store.write_value(record, "Grace")
    record.error.write("bad")

    store.reset({"name": "Ada"}, keep_dirty=True, keep_touched=True, keep_error=True)
    assert record.value() == "Ada"
    assert record.is_dirty() is True
    assert record.touched() is True
    assert record.error() == "bad"


def test_reset_moves_the_baseline():
    store = FieldStore({"name": "Ada"})
    record = store.register_field("name")
    store.reset({"name": "Grace"})
    store.write_value(record, "Grace")
    assert record.is_dirty() is False


def test_settle_discards_superseded_runs():
    store = FieldStore()
    record = store.register_field("name")
    old = record.begin_validation()
    new = record.begin_validation()
    assert record.settle(old, "stale") is False
    assert record.error() is None
    assert record.settle(new, "fresh") is True
    assert record.error() == "fresh"
