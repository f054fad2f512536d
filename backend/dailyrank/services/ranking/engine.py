from typing import Callable, List, Optional

from flask import current_app

from dailyrank import dates
from dailyrank.models import DailyRank, INTEGER_MAX, PLAYER_ID_MAX_LENGTH, PLAYER_NAME_MAX_LENGTH
from .store import RankStore, SqlRankStore

DEFAULT_ROLE_ID = 1
TOP_N = 100


class RankValidationError(ValueError):
    """Submission rejected before touching the store."""


def _is_int(value) -> bool:
    # bool is an int subclass but never a valid score or role
    return isinstance(value, int) and not isinstance(value, bool)


def validate_submission(player_name, score, role_id=None):
    """Return normalised ``(player_name, score, role_id)`` or raise."""
    if not isinstance(player_name, str) or not player_name.strip():
        raise RankValidationError('player_name must not be empty')
    if len(player_name.strip()) > PLAYER_NAME_MAX_LENGTH:
        raise RankValidationError(f'player_name must be at most {PLAYER_NAME_MAX_LENGTH} characters')
    if not _is_int(score) or not 0 <= score <= INTEGER_MAX:
        raise RankValidationError(f'score must be an integer between 0 and {INTEGER_MAX}')
    if role_id is None:
        role_id = DEFAULT_ROLE_ID
    elif not _is_int(role_id) or not 0 <= role_id <= INTEGER_MAX:
        raise RankValidationError(f'role_id must be an integer between 0 and {INTEGER_MAX}')
    return player_name.strip(), score, role_id


def validate_player_id(player_id):
    if not isinstance(player_id, str) or not player_id:
        raise RankValidationError('player_id must not be empty')
    if len(player_id) > PLAYER_ID_MAX_LENGTH:
        raise RankValidationError(f'player_id must be at most {PLAYER_ID_MAX_LENGTH} characters')
    return player_id


def _ranks_ahead(entries: List[DailyRank], player: DailyRank) -> int:
    return sum(
        1 for e in entries
        if e.score > player.score or (e.score == player.score and e.created_at < player.created_at)
    )


class RankingEngine:
    """Daily leaderboard rules: keep-the-higher-score submission, tie-broken
    ranking and the top-N working set.

    ``clock`` returns the current UTC time; it decides both the leaderboard
    day and the ``created_at`` used for tie-breaks.
    """

    def __init__(self, store: RankStore, top_n: int = TOP_N,
                 clock: Callable = dates.utc_now, logger=None):
        self.store = store
        self.top_n = top_n
        self.clock = clock
        self.logger = logger

    def _log(self, message: str) -> None:
        if self.logger is not None:
            self.logger.info(message)

    def today(self) -> str:
        return dates.today(self.clock())

    def submit(self, player_id: str, player_name, score, role_id=None) -> dict:
        validate_player_id(player_id)
        player_name, score, role_id = validate_submission(player_name, score, role_id)

        now = self.clock()
        record_date = dates.today(now)
        result = self.store.upsert_if_higher(
            player_id, record_date,
            {'player_name': player_name, 'role_id': role_id},
            score, created_at=dates.naive_utc(now),
        )
        # Snapshot before trimming: the row itself may fall outside the top-N
        payload = result.entry.to_dict()

        if not result.improved:
            self._log(f"[rank-submit] date={record_date} player={player_id} score={score} kept={payload['score']}")
            # Read-only: no trim on this path, the rank is reported as it stands
            payload.update({'rank': self.get_player_rank(player_id, record_date),
                            'updated': False, 'created': False})
            return payload

        self.trim(record_date)
        rank = self.get_player_rank(player_id, record_date)
        self._log(
            f"[rank-submit] date={record_date} player={player_id} role={role_id} "
            f"{'created' if result.created else 'updated'} score={score} rank={rank or 'unranked'}"
        )
        payload.update({'rank': rank, 'updated': True, 'created': result.created})
        return payload

    def trim(self, record_date: str) -> int:
        """Delete every row of the day outside the current top-N.

        The ``find_top`` read opens the store transaction and ``delete_not_in``
        commits it, so the snapshot and the delete run in one transaction. A
        submission racing between them may be dropped; the next trim restores
        the invariant.
        """
        keep = self.store.find_top(record_date, self.top_n)
        if not keep:
            return 0
        removed = self.store.delete_not_in(record_date, [e.id for e in keep])
        if removed:
            self._log(f"[rank-trim] date={record_date} kept={len(keep)} removed={removed}")
        return removed

    def get_player_rank(self, player_id: str, record_date: str) -> Optional[int]:
        """1-based rank inside the top-N window, or None when outside it."""
        top = self.store.find_top(record_date, self.top_n)
        player = next((e for e in top if e.player_id == player_id), None)
        if player is None:
            return None
        return 1 + _ranks_ahead(top, player)

    def list(self, record_date: str, limit: Optional[int] = None) -> List[dict]:
        limit = self.top_n if limit is None else limit
        rows = self.store.find_top(record_date, limit)
        return [dict(rank=index + 1, entry=row) for index, row in enumerate(rows)]

    def list_entries(self, record_date: str, requesting_player_id: Optional[str] = None,
                     limit: Optional[int] = None) -> dict:
        entries = []
        mine = None
        for item in self.list(record_date, limit):
            row = item['entry']
            is_self = requesting_player_id is not None and row.player_id == requesting_player_id
            if is_self:
                mine = item
            entries.append({
                'rank': item['rank'],
                'player_name': row.player_name,
                'role_id': row.role_id,
                'score': row.score,
                'is_self': is_self,
            })
        return {
            'entries': entries,
            'my_rank': mine['rank'] if mine else None,
            'my_score': mine['entry'].score if mine else None,
            'my_role_id': mine['entry'].role_id if mine else None,
            'date': record_date,
        }

    def my_rank(self, player_id: str, record_date: str) -> dict:
        entry = self.store.find_one(player_id, record_date)
        if entry is None:
            return {'on_rank': False, 'date': record_date}

        rank = self.get_player_rank(player_id, record_date)
        payload = {
            'on_rank': rank is not None,
            'score': entry.score,
            'player_name': entry.player_name,
            'role_id': entry.role_id,
            'date': record_date,
        }
        if rank is not None:
            payload['rank'] = rank
        return payload

    def stats(self, record_date: str) -> dict:
        total = self.store.count(record_date)
        top = self.store.find_top(record_date, self.top_n)
        return {
            'total_players': total,
            'top100_min_score': top[-1].score if top else 0,
            'top100_count': min(self.top_n, total),
            'date': record_date,
        }


def build_engine(app=None, clock: Optional[Callable] = None) -> RankingEngine:
    """Engine wired to the app's session, config, clock and logger."""
    app = app or current_app
    if clock is None:
        clock = app.extensions.get('rank_clock', dates.utc_now)
    return RankingEngine(
        SqlRankStore(),
        top_n=int(app.config.get('RANK_TOP_N', TOP_N)),
        clock=clock,
        logger=app.logger,
    )
