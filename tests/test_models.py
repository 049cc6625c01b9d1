import unittest

from pydantic import ValidationError

from vongform.domain.models import RegistryChange, ServiceEntry, ServiceRegistry


class TestServiceEntry(unittest.TestCase):
    def test_rejects_empty_version(self) -> None:
        with self.assertRaises(ValidationError):
            ServiceEntry(name="auth-2020", version="")

    def test_rejects_blank_name(self) -> None:
        with self.assertRaises(ValidationError):
            ServiceEntry(name="  ", version="1.0.0")

    def test_rejects_slash_in_name(self) -> None:
        with self.assertRaises(ValidationError):
            ServiceEntry(name="auth/2020", version="1.0.0")

    def test_is_frozen(self) -> None:
        entry = ServiceEntry(name="auth-2020", version="1.0.0")
        with self.assertRaises(ValidationError):
            entry.version = "2.0.0"


class TestServiceRegistry(unittest.TestCase):
    def test_key_must_match_entry_name(self) -> None:
        with self.assertRaises(ValidationError):
            ServiceRegistry(entries={"auth": ServiceEntry(name="sessions", version="1.0.0")})

    def test_equality_ignores_insertion_order(self) -> None:
        first = ServiceRegistry.from_versions({"a": "1", "b": "2"})
        second = ServiceRegistry.from_versions({"b": "2", "a": "1"})

        self.assertEqual(first, second)

    def test_sorted_entries_are_lexicographic(self) -> None:
        registry = ServiceRegistry.from_versions({"sessions-2020": "1.0.0", "auth-2020": "1.2.3", "b": "0.1"})

        self.assertEqual([entry.name for entry in registry.sorted_entries()], ["auth-2020", "b", "sessions-2020"])

    def test_with_entry_and_without_return_new_registries(self) -> None:
        registry = ServiceRegistry.from_versions({"a": "1"})

        added = registry.with_entry(ServiceEntry(name="b", version="2"))
        removed = added.without("a")

        self.assertEqual(registry.versions(), {"a": "1"})
        self.assertEqual(added.versions(), {"a": "1", "b": "2"})
        self.assertEqual(removed.versions(), {"b": "2"})

    def test_without_absent_name_returns_same_registry(self) -> None:
        registry = ServiceRegistry.from_versions({"a": "1"})

        self.assertIs(registry.without("missing"), registry)


class TestRegistryChange(unittest.TestCase):
    def test_describe(self) -> None:
        self.assertEqual(RegistryChange(name="a", kind="set", after="1").describe(), "added a at 1")
        self.assertEqual(
            RegistryChange(name="a", kind="set", before="1", after="2").describe(), "updated a from 1 to 2"
        )
        self.assertEqual(RegistryChange(name="a", kind="removed", before="1").describe(), "removed a (was 1)")
