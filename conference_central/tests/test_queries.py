import unittest

from conference_central.db import ConferenceRecord
from conference_central.errors import BadRequest
from conference_central.queries import build_query, format_filters


def _conference(name, **fields):
    return ConferenceRecord(conference_id=name, organizer_user_id="org", name=name, **fields)


class FormatFiltersTests(unittest.TestCase):
    def test_translates_field_and_operator(self):
        inequality_field, filters = format_filters(
            [{"field": "CITY", "operator": "EQ", "value": "London"}]
        )
        self.assertIsNone(inequality_field)
        self.assertEqual(filters[0].field, "city")
        self.assertEqual(filters[0].operator, "=")
        self.assertEqual(filters[0].value, "London")

    def test_integer_fields_are_coerced(self):
        inequality_field, filters = format_filters(
            [{"field": "MONTH", "operator": "GTEQ", "value": "6"}]
        )
        self.assertEqual(inequality_field, "month")
        self.assertEqual(filters[0].value, 6)

    def test_string_fields_keep_numbers_as_text(self):
        _, filters = format_filters(
            [
                {"field": "CITY", "operator": "GT", "value": 3},
                {"field": "TOPIC", "operator": "EQ", "value": 42},
            ]
        )
        self.assertEqual(filters[0].value, "3")
        self.assertEqual(filters[1].value, "42")

    def test_non_integer_value_rejected(self):
        with self.assertRaises(BadRequest):
            format_filters([{"field": "MAX_ATTENDEES", "operator": "EQ", "value": "many"}])

    def test_unknown_field_or_operator(self):
        with self.assertRaises(BadRequest):
            format_filters([{"field": "COUNTRY", "operator": "EQ", "value": "UK"}])
        with self.assertRaises(BadRequest):
            format_filters([{"field": "CITY", "operator": "LIKE", "value": "Lon"}])

    def test_inequality_on_one_field_only(self):
        with self.assertRaises(BadRequest):
            format_filters(
                [
                    {"field": "MONTH", "operator": "GT", "value": 1},
                    {"field": "SEATS_AVAILABLE", "operator": "GT", "value": 1},
                ]
            )
        # Two inequalities on the same field are fine.
        inequality_field, _ = format_filters(
            [
                {"field": "MONTH", "operator": "GT", "value": 1},
                {"field": "MONTH", "operator": "LT", "value": 6},
            ]
        )
        self.assertEqual(inequality_field, "month")

    def test_topic_inequality_rejected(self):
        with self.assertRaises(BadRequest):
            format_filters([{"field": "TOPIC", "operator": "NE", "value": "Web"}])


class BuildQueryTests(unittest.TestCase):
    def setUp(self):
        self.conferences = [
            _conference("Gamma", city="Paris", topics=["Web"], month=3, seats_available=10),
            _conference("Alpha", city="London", topics=["Data", "Web"], month=6, seats_available=2),
            _conference("Beta", city="London", topics=["Data"], month=1, seats_available=5),
        ]

    def test_no_filters_orders_by_name(self):
        query = build_query()
        self.assertEqual(query.order_by, ("name",))
        self.assertEqual(
            [c.name for c in query.apply(self.conferences)], ["Alpha", "Beta", "Gamma"]
        )

    def test_inequality_field_sorts_first(self):
        query = build_query([{"field": "SEATS_AVAILABLE", "operator": "GT", "value": 1}])
        self.assertEqual(query.order_by, ("seats_available", "name"))
        self.assertEqual(
            [c.name for c in query.apply(self.conferences)], ["Alpha", "Beta", "Gamma"]
        )

        query = build_query([{"field": "MONTH", "operator": "LT", "value": 6}])
        self.assertEqual([c.name for c in query.apply(self.conferences)], ["Beta", "Gamma"])

    def test_topic_equality_is_membership(self):
        query = build_query([{"field": "TOPIC", "operator": "EQ", "value": "Data"}])
        self.assertEqual([c.name for c in query.apply(self.conferences)], ["Alpha", "Beta"])

    def test_combined_filters(self):
        query = build_query(
            [
                {"field": "CITY", "operator": "EQ", "value": "London"},
                {"field": "TOPIC", "operator": "EQ", "value": "Web"},
            ]
        )
        self.assertEqual([c.name for c in query.apply(self.conferences)], ["Alpha"])

    def test_numeric_city_value(self):
        self.conferences.append(_conference("Five", city="5"))
        query = build_query([{"field": "CITY", "operator": "EQ", "value": 5}])
        self.assertEqual([c.name for c in query.apply(self.conferences)], ["Five"])

        query = build_query([{"field": "CITY", "operator": "GT", "value": 3}])
        self.assertEqual(
            [c.name for c in query.apply(self.conferences)], ["Five", "Alpha", "Beta", "Gamma"]
        )

    def test_missing_city_never_matches(self):
        self.conferences.append(_conference("Delta"))
        query = build_query([{"field": "CITY", "operator": "NE", "value": "Paris"}])
        self.assertEqual([c.name for c in query.apply(self.conferences)], ["Alpha", "Beta"])


if __name__ == "__main__":
    unittest.main()
