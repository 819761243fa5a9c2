from models.db import db

class RateLimitCounter(db.Model):
    __tablename__ = "rate_limit_counters"

    id = db.Column(db.Integer, primary_key=True)
    # "auth:<ip>" for anonymous auth endpoints, "api:<account id>" otherwise
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)

    count = db.Column(db.Integer, default=0, nullable=False)
    window_expires_at = db.Column(db.DateTime, nullable=False, index=True)
