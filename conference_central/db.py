"""
Keyed record store for profiles and conferences, with an in-memory
implementation for tests and a SQLAlchemy-backed one for production.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, Optional, Protocol, TypeVar, Union

from sqlalchemy import JSON, Column, Date, Integer, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from conference_central.queries import COMPARATORS, LIST_FIELDS, ConferenceQuery
from conference_central.types import TeeShirtSize

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionConflictError(RuntimeError):
    """Raised when a unit of work keeps losing to concurrent writers."""


@dataclass
class ProfileRecord:
    user_id: str
    display_name: Optional[str]
    main_email: Optional[str]
    tee_shirt_size: TeeShirtSize = TeeShirtSize.NOT_SPECIFIED
    conference_keys_to_attend: list[str] = field(default_factory=list)

    def update(
        self,
        display_name: Optional[str] = None,
        tee_shirt_size: Optional[TeeShirtSize] = None,
    ) -> None:
        if display_name is not None:
            self.display_name = display_name
        if tee_shirt_size is not None:
            self.tee_shirt_size = tee_shirt_size

    def is_attending(self, conference_key: str) -> bool:
        return conference_key in self.conference_keys_to_attend

    def add_conference(self, conference_key: str) -> None:
        if self.is_attending(conference_key):
            raise ValueError(f"Conference {conference_key} is already registered.")
        self.conference_keys_to_attend.append(conference_key)

    def unregister_from_conference(self, conference_key: str) -> None:
        if not self.is_attending(conference_key):
            raise ValueError(
                f"The conference with key {conference_key} has not been registered."
            )
        self.conference_keys_to_attend.remove(conference_key)

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "main_email": self.main_email,
            "tee_shirt_size": self.tee_shirt_size.value,
            "conference_keys_to_attend": list(self.conference_keys_to_attend),
        }


@dataclass
class ConferenceRecord:
    conference_id: str
    organizer_user_id: str
    name: str
    description: Optional[str] = None
    topics: list[str] = field(default_factory=list)
    city: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    month: int = 0
    max_attendees: int = 0
    seats_available: int = 0

    def book_seats(self, count: int) -> None:
        if count > self.seats_available:
            raise ValueError("There are no seats available.")
        self.seats_available -= count

    def give_back_seats(self, count: int) -> None:
        if self.seats_available + count > self.max_attendees:
            raise ValueError("The number of seats will exceed the capacity.")
        self.seats_available += count

    def as_dict(self) -> dict:
        return {
            "conference_id": self.conference_id,
            "organizer_user_id": self.organizer_user_id,
            "name": self.name,
            "description": self.description,
            "topics": list(self.topics),
            "city": self.city,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "month": self.month,
            "max_attendees": self.max_attendees,
            "seats_available": self.seats_available,
        }


Record = Union[ProfileRecord, ConferenceRecord]


@dataclass
class PairTransaction:
    """
    Detached copies of the profile and conference touched by one unit of work.

    Records handed to ``put`` are written together when the work returns.
    """

    user_id: str
    conference_id: Optional[str]
    profile: Optional[ProfileRecord]
    conference: Optional[ConferenceRecord]
    pending: list[Record] = field(default_factory=list)

    def put(self, *records: Record) -> None:
        for record in records:
            if isinstance(record, ProfileRecord):
                if record.user_id != self.user_id:
                    raise ValueError(f"Profile {record.user_id} is outside this transaction")
            elif isinstance(record, ConferenceRecord):
                if record.conference_id != self.conference_id:
                    raise ValueError(
                        f"Conference {record.conference_id} is outside this transaction"
                    )
            else:
                raise TypeError(f"Unsupported record type: {type(record).__name__}")
            self.pending.append(record)


class DbClient(Protocol):
    """Interface for record storage."""

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        ...

    def get_profiles(self, user_ids: Iterable[str]) -> list[ProfileRecord]:
        ...

    def save_profile(self, profile: ProfileRecord) -> None:
        ...

    def get_conference(self, conference_id: str) -> Optional[ConferenceRecord]:
        ...

    def get_conferences(self, conference_ids: Iterable[str]) -> list[ConferenceRecord]:
        ...

    def list_conferences_by_organizer(self, user_id: str) -> list[ConferenceRecord]:
        ...

    def query_conferences(self, query: ConferenceQuery) -> list[ConferenceRecord]:
        ...

    def transact(
        self,
        user_id: str,
        conference_id: Optional[str],
        work: Callable[[PairTransaction], T],
    ) -> T:
        ...


class InMemoryDbClient:
    """In-memory record store guarded by per-record locks."""

    def __init__(self):
        self.profiles: Dict[str, ProfileRecord] = {}
        self.conferences: Dict[str, ConferenceRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.profiles.clear()
        self.conferences.clear()

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        return copy.deepcopy(self.profiles.get(user_id))

    def get_profiles(self, user_ids: Iterable[str]) -> list[ProfileRecord]:
        found = []
        for user_id in dict.fromkeys(user_ids):
            profile = self.profiles.get(user_id)
            if profile:
                found.append(copy.deepcopy(profile))
        return found

    def save_profile(self, profile: ProfileRecord) -> None:
        with self._lock_for(f"Profile:{profile.user_id}"):
            self.profiles[profile.user_id] = copy.deepcopy(profile)

    def get_conference(self, conference_id: str) -> Optional[ConferenceRecord]:
        return copy.deepcopy(self.conferences.get(conference_id))

    def get_conferences(self, conference_ids: Iterable[str]) -> list[ConferenceRecord]:
        found = []
        for conference_id in conference_ids:
            conference = self.conferences.get(conference_id)
            if conference:
                found.append(copy.deepcopy(conference))
        return found

    def list_conferences_by_organizer(self, user_id: str) -> list[ConferenceRecord]:
        owned = [
            copy.deepcopy(c)
            for c in self.conferences.values()
            if c.organizer_user_id == user_id
        ]
        return sorted(owned, key=lambda c: c.name)

    def query_conferences(self, query: ConferenceQuery) -> list[ConferenceRecord]:
        return [copy.deepcopy(c) for c in query.apply(list(self.conferences.values()))]

    def transact(
        self,
        user_id: str,
        conference_id: Optional[str],
        work: Callable[[PairTransaction], T],
    ) -> T:
        lock_names = {f"Profile:{user_id}"}
        if conference_id:
            lock_names.add(f"Conference:{conference_id}")
        with ExitStack() as stack:
            # Fixed acquisition order so two units of work cannot deadlock.
            for name in sorted(lock_names):
                stack.enter_context(self._lock_for(name))
            txn = PairTransaction(
                user_id=user_id,
                conference_id=conference_id,
                profile=self.get_profile(user_id),
                conference=self.get_conference(conference_id) if conference_id else None,
            )
            result = work(txn)
            for record in txn.pending:
                if isinstance(record, ProfileRecord):
                    self.profiles[record.user_id] = copy.deepcopy(record)
                else:
                    self.conferences[record.conference_id] = copy.deepcopy(record)
            return result


class SqlAlchemyDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Rows carry a version counter; a unit of work that loses a race is retried
    from scratch up to ``max_attempts`` times.
    """

    def __init__(self, database_url: str, max_attempts: int = 3):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlAlchemyDbClient")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_profile_record(self, row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            user_id=row.user_id,
            display_name=row.display_name,
            main_email=row.main_email,
            tee_shirt_size=TeeShirtSize(row.tee_shirt_size),
            conference_keys_to_attend=list(row.conference_keys_to_attend or []),
        )

    def _to_conference_record(self, row: "ConferenceRow") -> ConferenceRecord:
        return ConferenceRecord(
            conference_id=row.conference_id,
            organizer_user_id=row.organizer_user_id,
            name=row.name,
            description=row.description,
            topics=list(row.topics or []),
            city=row.city,
            start_date=row.start_date,
            end_date=row.end_date,
            month=row.month,
            max_attendees=row.max_attendees,
            seats_available=row.seats_available,
        )

    def _write_profile(
        self, session: Session, record: ProfileRecord, row: Optional["ProfileRow"]
    ) -> None:
        if row is None:
            row = ProfileRow(user_id=record.user_id)
            session.add(row)
        row.display_name = record.display_name
        row.main_email = record.main_email
        row.tee_shirt_size = record.tee_shirt_size.value
        row.conference_keys_to_attend = list(record.conference_keys_to_attend)

    def _write_conference(
        self, session: Session, record: ConferenceRecord, row: Optional["ConferenceRow"]
    ) -> None:
        if row is None:
            row = ConferenceRow(
                conference_id=record.conference_id,
                organizer_user_id=record.organizer_user_id,
            )
            session.add(row)
        row.name = record.name
        row.description = record.description
        row.topics = list(record.topics)
        row.city = record.city
        row.start_date = record.start_date
        row.end_date = record.end_date
        row.month = record.month
        row.max_attendees = record.max_attendees
        row.seats_available = record.seats_available

    def _run_with_retry(self, unit: Callable[[Session], T]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.Session() as session:
                    result = unit(session)
                    session.commit()
                    return result
            except (StaleDataError, IntegrityError) as exc:
                logger.warning(
                    "Concurrent write detected (attempt %d/%d): %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )
        raise TransactionConflictError(
            f"Transaction did not commit after {self.max_attempts} attempts"
        )

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            return self._to_profile_record(row) if row else None

    def get_profiles(self, user_ids: Iterable[str]) -> list[ProfileRecord]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        with self.Session() as session:
            rows = session.execute(
                select(ProfileRow).where(ProfileRow.user_id.in_(ids))
            ).scalars()
            by_id = {row.user_id: self._to_profile_record(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def save_profile(self, profile: ProfileRecord) -> None:
        def unit(session: Session) -> None:
            row = session.get(ProfileRow, profile.user_id, with_for_update=True)
            self._write_profile(session, profile, row)

        self._run_with_retry(unit)

    def get_conference(self, conference_id: str) -> Optional[ConferenceRecord]:
        with self.Session() as session:
            row = session.get(ConferenceRow, conference_id)
            return self._to_conference_record(row) if row else None

    def get_conferences(self, conference_ids: Iterable[str]) -> list[ConferenceRecord]:
        ids = list(conference_ids)
        if not ids:
            return []
        with self.Session() as session:
            rows = session.execute(
                select(ConferenceRow).where(ConferenceRow.conference_id.in_(ids))
            ).scalars()
            by_id = {row.conference_id: self._to_conference_record(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def list_conferences_by_organizer(self, user_id: str) -> list[ConferenceRecord]:
        with self.Session() as session:
            stmt = (
                select(ConferenceRow)
                .where(ConferenceRow.organizer_user_id == user_id)
                .order_by(ConferenceRow.name.asc())
            )
            return [self._to_conference_record(row) for row in session.execute(stmt).scalars()]

    def query_conferences(self, query: ConferenceQuery) -> list[ConferenceRecord]:
        stmt = select(ConferenceRow)
        list_filters = []
        for f in query.filters:
            if f.field in LIST_FIELDS:
                list_filters.append(f)
                continue
            column = getattr(ConferenceRow, f.field)
            stmt = stmt.where(COMPARATORS[f.operator](column, f.value))
        stmt = stmt.order_by(*(getattr(ConferenceRow, name).asc() for name in query.order_by))
        with self.Session() as session:
            records = [self._to_conference_record(row) for row in session.execute(stmt).scalars()]
        # JSON list membership is not portable SQL; filter topics here.
        return [r for r in records if all(f.matches(r) for f in list_filters)]

    def transact(
        self,
        user_id: str,
        conference_id: Optional[str],
        work: Callable[[PairTransaction], T],
    ) -> T:
        def unit(session: Session) -> T:
            profile_row = session.get(ProfileRow, user_id, with_for_update=True)
            conference_row = (
                session.get(ConferenceRow, conference_id, with_for_update=True)
                if conference_id
                else None
            )
            txn = PairTransaction(
                user_id=user_id,
                conference_id=conference_id,
                profile=self._to_profile_record(profile_row) if profile_row else None,
                conference=(
                    self._to_conference_record(conference_row) if conference_row else None
                ),
            )
            result = work(txn)
            for record in txn.pending:
                if isinstance(record, ProfileRecord):
                    self._write_profile(session, record, profile_row)
                else:
                    self._write_conference(session, record, conference_row)
            return result

        return self._run_with_retry(unit)


Base = declarative_base()


class ProfileRow(Base):
    __tablename__ = "profiles"

    user_id = Column(String, primary_key=True)
    display_name = Column(String, nullable=True)
    main_email = Column(String, nullable=True)
    tee_shirt_size = Column(
        String, nullable=False, default=TeeShirtSize.NOT_SPECIFIED.value
    )
    conference_keys_to_attend = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ConferenceRow(Base):
    __tablename__ = "conferences"

    conference_id = Column(String, primary_key=True)
    organizer_user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    topics = Column(JSON, nullable=False, default=list)
    city = Column(String, nullable=True, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    month = Column(Integer, nullable=False, default=0, index=True)
    max_attendees = Column(Integer, nullable=False, default=0)
    seats_available = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
