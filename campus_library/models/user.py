from datetime import datetime
from campus_library.extensions import db


class Role:
    STUDENT = "student"
    FACULTY = "faculty"
    LIBRARIAN = "librarian"
    HOD = "hod"

    LIBRARY_STAFF = (LIBRARIAN, HOD)


class User(db.Model):
    """Local mirror of the campus user directory (role + college only matter here)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    display_name = db.Column(db.String(200), nullable=True)

    role = db.Column(db.String(20), nullable=False, default=Role.STUDENT)
    college_id = db.Column(db.Integer, db.ForeignKey("colleges.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    college = db.relationship("College", backref="users")
