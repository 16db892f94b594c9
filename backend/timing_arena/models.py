from datetime import datetime, timezone

from timing_arena import db


def utcnow():
    return datetime.now(timezone.utc)


class LeaderboardEntry(db.Model):
    __tablename__ = 'leaderboard'
    identity_key = db.Column(db.String(64), primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    best_accuracy_ms = db.Column(db.Integer, nullable=True, index=True)
    games_played = db.Column(db.Integer, default=0, nullable=False)
    last_played_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'identityKey': self.identity_key,
            'username': self.username,
            'bestAccuracyMs': self.best_accuracy_ms,
            'gamesPlayed': self.games_played,
            'lastPlayedAt': self.last_played_at.isoformat() if self.last_played_at else None,
        }
