from dailyrank import db
from dailyrank.dates import naive_utc

PLAYER_ID_MAX_LENGTH = 100
PLAYER_NAME_MAX_LENGTH = 50
# Signed 32-bit, the narrowest INTEGER among the supported backends
INTEGER_MAX = 2 ** 31 - 1


class DailyRank(db.Model):
    """One leaderboard row per player per UTC+8 day."""
    __tablename__ = 'daily_rank'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'record_date', name='uq_daily_rank_player_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(PLAYER_ID_MAX_LENGTH), nullable=False)
    record_date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD, UTC+8
    player_name = db.Column(db.String(PLAYER_NAME_MAX_LENGTH), nullable=False)
    role_id = db.Column(db.Integer, nullable=False, default=1)
    score = db.Column(db.Integer, nullable=False, default=0)
    # Tie-break only; never advanced when the score improves
    created_at = db.Column(db.DateTime, nullable=False, default=naive_utc)

    def to_dict(self):
        return {
            'player_name': self.player_name,
            'role_id': self.role_id,
            'score': self.score,
            'date': self.record_date,
        }

    def __repr__(self):
        return f'<DailyRank {self.player_id} {self.record_date} score={self.score}>'


# Serves find_top: (record_date, score desc, created_at asc)
db.Index('ix_daily_rank_date_score', DailyRank.record_date, DailyRank.score.desc(), DailyRank.created_at)
