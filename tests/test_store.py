"""Tests for named profile storage."""

import pytest
import yaml

from whistle_counter.errors import ProfileNameRequired, StoreUnavailable
from whistle_counter.models import NamedProfile
from whistle_counter.store import MemoryProfileStore, YamlProfileStore

from helpers import make_profile

KITCHEN = make_profile(target=2000.0)
OFFICE = make_profile(target=3000.0)


class TestMemoryProfileStore:
    def test_put_and_get_are_case_insensitive(self):
        store = MemoryProfileStore()

        assert store.put("Kitchen", KITCHEN) is True

        assert store.get("kitchen") == KITCHEN
        assert store.get("KITCHEN ") == KITCHEN
        assert "kItchen" in store
        assert store.get("office") is None

    def test_save_under_existing_name_replaces_in_place(self):
        store = MemoryProfileStore()
        store.put("Kitchen", KITCHEN)
        store.put("Office", OFFICE)

        created = store.put("KITCHEN", OFFICE)

        assert created is False
        assert len(store) == 2
        assert store.names() == ["KITCHEN", "Office"]
        assert store.get("kitchen") == OFFICE

    def test_save_under_new_name_adds_one(self):
        store = MemoryProfileStore([NamedProfile("Kitchen", KITCHEN)])

        store.put("Office", OFFICE)

        assert len(store) == 2
        assert [entry.name for entry in store] == ["Kitchen", "Office"]

    def test_delete(self):
        store = MemoryProfileStore([NamedProfile("Kitchen", KITCHEN)])

        assert store.delete("office") is False
        assert store.delete("kitchen") is True
        assert len(store) == 0
        assert store.list() == []

    def test_find_returns_name_of_identical_profile(self):
        store = MemoryProfileStore([NamedProfile("Kitchen", KITCHEN)])

        assert store.find(make_profile(target=2000.0)) == "Kitchen"
        assert store.find(OFFICE) is None

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_names_are_rejected(self, name):
        store = MemoryProfileStore()

        with pytest.raises(ProfileNameRequired):
            store.put(name, KITCHEN)
        with pytest.raises(ProfileNameRequired):
            store.get(name)
        with pytest.raises(ProfileNameRequired):
            store.delete(name)

    def test_list_is_a_snapshot(self):
        store = MemoryProfileStore([NamedProfile("Kitchen", KITCHEN)])
        snapshot = store.list()

        store.put("Office", OFFICE)

        assert len(snapshot) == 1


class TestYamlProfileStore:
    def test_profiles_survive_reopening(self, tmp_path):
        path = tmp_path / "profiles.yaml"
        store = YamlProfileStore(path)
        store.put("Kitchen", KITCHEN)
        store.put("Office", OFFICE)
        store.delete("office")

        reopened = YamlProfileStore(path)

        assert reopened.load_error is None
        assert reopened.names() == ["Kitchen"]
        assert reopened.get("kitchen") == KITCHEN

    def test_file_format(self, tmp_path):
        path = tmp_path / "profiles.yaml"
        YamlProfileStore(path).put("Kitchen", KITCHEN)

        data = yaml.safe_load(path.read_text())

        assert data == [{"name": "Kitchen", "profile": KITCHEN.to_dict()}]

    def test_missing_file_is_empty(self, tmp_path):
        store = YamlProfileStore(tmp_path / "missing" / "profiles.yaml")

        assert len(store) == 0
        assert store.load_error is None

    @pytest.mark.parametrize(
        "content",
        [
            "not: [valid",
            "just a string",
            "- name: Kitchen\n",
            "- name: Kitchen\n  profile: {target_frequency: 2000, min_frequency: 2100, "
            "max_frequency: 2200, min_amplitude: 100, max_amplitude: 200}\n",
        ],
    )
    def test_corrupted_file_falls_back_to_empty(self, tmp_path, content):
        path = tmp_path / "profiles.yaml"
        path.write_text(content)

        store = YamlProfileStore(path)

        assert len(store) == 0
        assert store.load_error

    def test_write_failure_raises_but_keeps_session_state(self, tmp_path):
        # A directory where the file should be makes both read and write fail
        path = tmp_path / "profiles.yaml"
        path.mkdir()

        store = YamlProfileStore(path)
        assert store.load_error

        with pytest.raises(StoreUnavailable):
            store.put("Kitchen", KITCHEN)
        assert store.get("Kitchen") == KITCHEN
        assert list(tmp_path.glob(".profiles.yaml.*")) == []
