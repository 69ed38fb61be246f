from datetime import datetime
from campus_library.extensions import db


class College(db.Model):
    __tablename__ = "colleges"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
