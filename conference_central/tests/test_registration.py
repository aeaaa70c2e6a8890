import threading
import unittest

from conference_central.db import ConferenceRecord, InMemoryDbClient, ProfileRecord
from conference_central.errors import Conflict, Forbidden, NotFound
from conference_central.identity import User
from conference_central.keys import make_conference_key
from conference_central.registration import (
    ALREADY_REGISTERED,
    NO_SEATS_AVAILABLE,
    NOT_REGISTERED,
    UNKNOWN_EXCEPTION,
    RegistrationResult,
    raise_for_result,
    register,
    unregister,
)
from conference_central.types import RegistrationOutcome


def _seed_conference(db, organizer="organizer", max_attendees=2, seats_available=None):
    key = make_conference_key(organizer)
    db.conferences[key] = ConferenceRecord(
        conference_id=key,
        organizer_user_id=organizer,
        name="PyCon",
        max_attendees=max_attendees,
        seats_available=max_attendees if seats_available is None else seats_available,
    )
    return key


class RegistrationTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.user = User("u1", "u1@example.com")

    def test_register_books_one_seat(self):
        key = _seed_conference(self.db, max_attendees=2)
        result = register(self.db, self.user, key)

        self.assertTrue(result.result)
        self.assertEqual(result.outcome, RegistrationOutcome.SUCCESS)
        self.assertEqual(self.db.get_conference(key).seats_available, 1)
        self.assertEqual(self.db.get_profile("u1").conference_keys_to_attend, [key])

    def test_register_creates_default_profile(self):
        key = _seed_conference(self.db)
        register(self.db, self.user, key)

        profile = self.db.get_profile("u1")
        self.assertEqual(profile.display_name, "u1")
        self.assertEqual(profile.main_email, "u1@example.com")

    def test_register_twice(self):
        key = _seed_conference(self.db, max_attendees=5)
        register(self.db, self.user, key)
        result = register(self.db, self.user, key)

        self.assertFalse(result.result)
        self.assertEqual(result.reason, ALREADY_REGISTERED)
        self.assertEqual(result.outcome, RegistrationOutcome.ALREADY_REGISTERED)
        self.assertEqual(self.db.get_conference(key).seats_available, 4)
        self.assertEqual(self.db.get_profile("u1").conference_keys_to_attend, [key])

    def test_register_when_full(self):
        key = _seed_conference(self.db, max_attendees=1, seats_available=0)
        result = register(self.db, self.user, key)

        self.assertFalse(result.result)
        self.assertEqual(result.reason, NO_SEATS_AVAILABLE)
        self.assertIsNone(self.db.get_profile("u1"))
        self.assertEqual(self.db.get_conference(key).seats_available, 0)

    def test_register_missing_conference(self):
        key = make_conference_key("nobody")
        result = register(self.db, self.user, key)

        self.assertEqual(result.outcome, RegistrationOutcome.NOT_FOUND)
        self.assertEqual(result.reason, f"No Conference found with key: {key}")

    def test_register_malformed_key(self):
        result = register(self.db, self.user, "%%%")
        self.assertEqual(result.outcome, RegistrationOutcome.NOT_FOUND)

    def test_unregister_restores_seat(self):
        key = _seed_conference(self.db, max_attendees=3)
        register(self.db, self.user, key)
        result = unregister(self.db, self.user, key)

        self.assertTrue(result.result)
        self.assertEqual(self.db.get_conference(key).seats_available, 3)
        self.assertEqual(self.db.get_profile("u1").conference_keys_to_attend, [])

    def test_unregister_without_registration(self):
        key = _seed_conference(self.db)
        result = unregister(self.db, self.user, key)

        self.assertFalse(result.result)
        self.assertEqual(result.reason, NOT_REGISTERED)
        self.assertEqual(self.db.get_conference(key).seats_available, 2)

    def test_inconsistent_records_report_unknown_error(self):
        # Profile claims a seat the conference never gave out.
        key = _seed_conference(self.db, max_attendees=1, seats_available=1)
        self.db.profiles["u1"] = ProfileRecord(
            user_id="u1",
            display_name="u1",
            main_email=None,
            conference_keys_to_attend=[key],
        )
        with self.assertLogs("conference_central.registration", level="ERROR"):
            result = unregister(self.db, self.user, key)

        self.assertEqual(result.outcome, RegistrationOutcome.UNKNOWN_ERROR)
        self.assertEqual(result.reason, UNKNOWN_EXCEPTION)
        # Nothing was written.
        self.assertEqual(self.db.get_profile("u1").conference_keys_to_attend, [key])
        self.assertEqual(self.db.get_conference(key).seats_available, 1)

    def test_two_users_one_conference(self):
        key = _seed_conference(self.db, max_attendees=1)
        u2 = User("u2", "u2@example.com")

        self.assertTrue(register(self.db, self.user, key).result)
        self.assertEqual(register(self.db, u2, key).reason, NO_SEATS_AVAILABLE)
        self.assertTrue(unregister(self.db, self.user, key).result)
        self.assertTrue(register(self.db, u2, key).result)

        self.assertEqual(self.db.get_conference(key).seats_available, 0)
        self.assertEqual(self.db.get_profile("u1").conference_keys_to_attend, [])
        self.assertEqual(self.db.get_profile("u2").conference_keys_to_attend, [key])

    def test_concurrent_last_seat(self):
        key = _seed_conference(self.db, max_attendees=1)
        users = [User(f"racer{i}", None) for i in range(8)]
        results: list[RegistrationResult] = []
        results_lock = threading.Lock()
        start = threading.Barrier(len(users))

        def attempt(user):
            start.wait()
            result = register(self.db, user, key)
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=attempt, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r.result]
        self.assertEqual(len(winners), 1)
        self.assertEqual(
            sum(1 for r in results if r.outcome == RegistrationOutcome.NO_SEATS_AVAILABLE),
            len(users) - 1,
        )
        self.assertEqual(self.db.get_conference(key).seats_available, 0)
        attending = [
            u.user_id
            for u in users
            if (p := self.db.get_profile(u.user_id)) and p.is_attending(key)
        ]
        self.assertEqual(len(attending), 1)

    def test_seat_accounting_matches_attendees(self):
        key = _seed_conference(self.db, max_attendees=4)
        users = [User(f"user{i}", None) for i in range(3)]
        for user in users:
            register(self.db, user, key)
        unregister(self.db, users[1], key)

        conference = self.db.get_conference(key)
        attending = [
            p for p in self.db.profiles.values() if p.is_attending(key)
        ]
        self.assertEqual(conference.max_attendees - conference.seats_available, len(attending))


class RaiseForResultTests(unittest.TestCase):
    def _result(self, outcome, reason="reason"):
        return RegistrationResult(False, reason, outcome)

    def test_success_does_not_raise(self):
        raise_for_result(RegistrationResult(True, "ok", RegistrationOutcome.SUCCESS))

    def test_mapping(self):
        with self.assertRaises(NotFound) as ctx:
            raise_for_result(self._result(RegistrationOutcome.NOT_FOUND, "No Conference found"))
        self.assertEqual(ctx.exception.detail, "No Conference found")

        with self.assertRaises(Conflict) as ctx:
            raise_for_result(self._result(RegistrationOutcome.ALREADY_REGISTERED))
        self.assertEqual(ctx.exception.detail, "You have already registered")

        with self.assertRaises(Conflict) as ctx:
            raise_for_result(self._result(RegistrationOutcome.NO_SEATS_AVAILABLE))
        self.assertEqual(ctx.exception.detail, "There are no seats available")

        with self.assertRaises(Conflict) as ctx:
            raise_for_result(self._result(RegistrationOutcome.NOT_REGISTERED))
        self.assertEqual(ctx.exception.detail, "You have not registered yet")

        with self.assertRaises(Forbidden) as ctx:
            raise_for_result(self._result(RegistrationOutcome.UNKNOWN_ERROR))
        self.assertEqual(ctx.exception.status_code, 403)


if __name__ == "__main__":
    unittest.main()
