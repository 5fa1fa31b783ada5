from dashanddots import db
import time


class RoomRecord(db.Model):
    """One key of the room store: serialized room bytes plus an optional expiry."""
    __tablename__ = 'room_record'
    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.LargeBinary, nullable=False)
    expires_at = db.Column(db.Float, nullable=True, index=True)  # epoch seconds, NULL = no TTL
    updated_at = db.Column(db.Float, nullable=False, default=time.time, onupdate=time.time)

    def is_expired(self, now=None):
        if self.expires_at is None:
            return False
        return self.expires_at <= (now if now is not None else time.time())

    def to_dict(self):
        return {
            'key': self.key,
            'size': len(self.value or b''),
            'expires_at': self.expires_at,
            'updated_at': self.updated_at,
        }
