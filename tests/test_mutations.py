import unittest

from vongform.domain.exceptions import InvalidMutation
from vongform.domain.models import ServiceRegistry
from vongform.domain.mutations import RemoveService, SetVersion, apply_all, parse_remove, parse_set


class TestParseSet(unittest.TestCase):
    def test_parses_name_and_version(self) -> None:
        self.assertEqual(parse_set("auth-2020=1.2.3"), SetVersion(name="auth-2020", version="1.2.3"))

    def test_splits_on_first_equals_only(self) -> None:
        self.assertEqual(parse_set("auth=1.0+build=7"), SetVersion(name="auth", version="1.0+build=7"))

    def test_missing_equals_raises(self) -> None:
        with self.assertRaises(InvalidMutation) as ctx:
            parse_set("auth-2020")

        self.assertEqual(ctx.exception.argument, "auth-2020")

    def test_missing_name_raises(self) -> None:
        with self.assertRaises(InvalidMutation):
            parse_set("=1.0.0")

    def test_empty_version_means_remove(self) -> None:
        self.assertEqual(parse_set("auth-2020="), RemoveService(name="auth-2020"))

    def test_invalid_name_raises(self) -> None:
        with self.assertRaises(InvalidMutation):
            parse_set("team/auth=1.0.0")


class TestParseRemove(unittest.TestCase):
    def test_parses_name(self) -> None:
        self.assertEqual(parse_remove("auth-2020"), RemoveService(name="auth-2020"))

    def test_empty_name_raises(self) -> None:
        with self.assertRaises(InvalidMutation):
            parse_remove("")


class TestApply(unittest.TestCase):
    def test_set_twice_is_idempotent(self) -> None:
        registry = ServiceRegistry()
        mutation = SetVersion(name="a", version="1.0")

        once = mutation.apply(registry)
        twice = mutation.apply(once)

        self.assertEqual(once, twice)
        self.assertEqual(twice.versions(), {"a": "1.0"})

    def test_remove_absent_is_noop(self) -> None:
        registry = ServiceRegistry.from_versions({"a": "1.0"})

        self.assertEqual(RemoveService(name="b").apply(registry), registry)

    def test_last_write_wins(self) -> None:
        result, changes = apply_all(
            ServiceRegistry(), [SetVersion(name="a", version="1.0"), SetVersion(name="a", version="2.0")]
        )

        self.assertEqual(result.version_of("a"), "2.0")
        self.assertEqual(len(changes), 1)
        self.assertEqual(changes[0].after, "2.0")

    def test_interleaved_set_and_remove_follow_order(self) -> None:
        start = ServiceRegistry.from_versions({"a": "1.0"})

        removed_last, _ = apply_all(start, [SetVersion(name="a", version="2.0"), RemoveService(name="a")])
        set_last, _ = apply_all(start, [RemoveService(name="a"), SetVersion(name="a", version="2.0")])

        self.assertNotIn("a", removed_last)
        self.assertEqual(set_last.version_of("a"), "2.0")

    def test_changes_are_net_and_sorted(self) -> None:
        start = ServiceRegistry.from_versions({"a": "1.0", "b": "1.0", "c": "1.0"})

        _, changes = apply_all(
            start,
            [
                SetVersion(name="c", version="2.0"),
                RemoveService(name="a"),
                SetVersion(name="b", version="9.9"),
                SetVersion(name="b", version="1.0"),
                SetVersion(name="d", version="0.1"),
            ],
        )

        self.assertEqual(
            [(change.name, change.kind, change.before, change.after) for change in changes],
            [("a", "removed", "1.0", None), ("c", "set", "1.0", "2.0"), ("d", "set", None, "0.1")],
        )

    def test_empty_batch_has_no_changes(self) -> None:
        start = ServiceRegistry.from_versions({"a": "1.0"})

        result, changes = apply_all(start, [])

        self.assertEqual(result, start)
        self.assertEqual(changes, [])
