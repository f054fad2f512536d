from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError

from dailyrank import db
from dailyrank.models import DailyRank


class UpsertResult(NamedTuple):
    entry: DailyRank
    created: bool
    improved: bool


class RankStore(ABC):
    """Operations the ranking engine needs from the rank table."""

    @abstractmethod
    def upsert_if_higher(self, player_id: str, record_date: str, fields: dict, score: int,
                         created_at: Optional[datetime] = None) -> UpsertResult:
        """Create the row, or raise its score; never lowers a stored score."""

    @abstractmethod
    def find_top(self, record_date: str, limit: int) -> List[DailyRank]:
        """Rows for the day ordered by score desc, created_at asc."""

    @abstractmethod
    def find_one(self, player_id: str, record_date: str) -> Optional[DailyRank]:
        ...

    @abstractmethod
    def delete_where_not(self, record_date: str) -> int:
        ...

    @abstractmethod
    def delete_not_in(self, record_date: str, ids_to_keep: Iterable[int]) -> int:
        ...

    @abstractmethod
    def count(self, record_date: str) -> int:
        ...


class SqlRankStore(RankStore):
    """Rank table backed by the Flask-SQLAlchemy session.

    Write operations commit on success and roll back before re-raising, so a
    failed call never leaves the scoped session in a broken state for the
    next request.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def _query(self):
        return self.session.query(DailyRank)

    def _raise_score(self, player_id: str, record_date: str, fields: dict, score: int) -> int:
        # Compare-and-set in a single statement: only a strictly higher score wins
        values = dict(fields)
        values['score'] = score
        return self._query().filter(
            DailyRank.player_id == player_id,
            DailyRank.record_date == record_date,
            DailyRank.score < score,
        ).update(values, synchronize_session=False)

    def _settle(self, player_id: str, record_date: str, fields: dict, score: int) -> Optional[UpsertResult]:
        if self._raise_score(player_id, record_date, fields, score):
            self.session.commit()
            return UpsertResult(self.find_one(player_id, record_date), False, True)
        existing = self.find_one(player_id, record_date)
        if existing is None:
            return None
        self.session.commit()
        return UpsertResult(existing, False, False)

    def upsert_if_higher(self, player_id, record_date, fields, score, created_at=None):
        try:
            settled = self._settle(player_id, record_date, fields, score)
            if settled is not None:
                return settled

            entry = DailyRank(player_id=player_id, record_date=record_date, score=score, **fields)
            if created_at is not None:
                entry.created_at = created_at
            self.session.add(entry)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request inserted the same (player, day) first
                self.session.rollback()
                settled = self._settle(player_id, record_date, fields, score)
                if settled is None:
                    raise
                return settled
            return UpsertResult(entry, True, True)
        except Exception:
            self.session.rollback()
            raise

    def find_top(self, record_date, limit):
        return (
            self._query()
            .filter(DailyRank.record_date == record_date)
            .order_by(DailyRank.score.desc(), DailyRank.created_at.asc(), DailyRank.id.asc())
            .limit(limit)
            .all()
        )

    def find_one(self, player_id, record_date):
        return self._query().filter_by(player_id=player_id, record_date=record_date).first()

    def delete_where_not(self, record_date):
        try:
            removed = self._query().filter(DailyRank.record_date != record_date).delete(synchronize_session=False)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return removed

    def delete_not_in(self, record_date, ids_to_keep):
        keep = list(ids_to_keep)
        try:
            query = self._query().filter(DailyRank.record_date == record_date)
            if keep:
                query = query.filter(DailyRank.id.notin_(keep))
            removed = query.delete(synchronize_session=False)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return removed

    def count(self, record_date):
        return self._query().filter_by(record_date=record_date).count()
