import unittest

from tests.base import Person, Tag

from crudkit.schemas.query import OrderSpec
from crudkit.services.ordering import order_by_clauses, parse_order_options, parse_order_token, resolve_order
from crudkit.services.schema import introspect


class OrderTokenTests(unittest.TestCase):
    def test_sign_prefix(self):
        self.assertEqual(parse_order_token("-created_at"), OrderSpec(column="created_at", desc=True))
        self.assertEqual(parse_order_token("+name"), OrderSpec(column="name", desc=False))
        self.assertEqual(parse_order_token("name"), OrderSpec(column="name", desc=False))

    def test_direction_word(self):
        self.assertEqual(parse_order_token("age desc"), OrderSpec(column="age", desc=True))
        self.assertEqual(parse_order_token("age:DESCENDING"), OrderSpec(column="age", desc=True))
        self.assertEqual(parse_order_token("age,asc"), OrderSpec(column="age", desc=False))

    def test_direction_word_overrides_sign(self):
        self.assertEqual(parse_order_token("-age asc"), OrderSpec(column="age", desc=False))

    def test_empty_tokens(self):
        self.assertIsNone(parse_order_token(""))
        self.assertIsNone(parse_order_token("  "))
        self.assertIsNone(parse_order_token("-"))

    def test_options_from_all_keys(self):
        query = {"order": ["-age"], "sort": "name", "order_by": [""], "orderBy": ["id desc"]}
        self.assertEqual(
            parse_order_options(query),
            [
                OrderSpec(column="age", desc=True),
                OrderSpec(column="name"),
                OrderSpec(column="id", desc=True),
            ],
        )


class ResolveOrderTests(unittest.TestCase):
    def setUp(self):
        self.allowed = introspect(Person).allowed

    def test_unknown_columns_dropped_and_first_occurrence_wins(self):
        resolved = resolve_order(["-age", "nope", "age", "name"], self.allowed)
        self.assertEqual(resolved, [OrderSpec(column="age", desc=True), OrderSpec(column="name")])

    def test_single_string(self):
        self.assertEqual(resolve_order("-age", self.allowed), [OrderSpec(column="age", desc=True)])

    def test_empty_inputs(self):
        self.assertEqual(resolve_order(None, self.allowed), [])
        self.assertEqual(resolve_order(["age"], frozenset()), [])

    def test_fallback_is_primary_key_ascending(self):
        (clause,) = order_by_clauses(introspect(Person), [])
        self.assertIn("people.id ASC", str(clause))
        (clause,) = order_by_clauses(introspect(Tag), [])
        self.assertIn("tags.code ASC", str(clause))

    def test_clauses_follow_specs(self):
        clauses = order_by_clauses(introspect(Person), [OrderSpec(column="age", desc=True), OrderSpec(column="name")])
        self.assertEqual([str(clause) for clause in clauses], ["people.age DESC", "people.name ASC"])


if __name__ == "__main__":
    unittest.main()
