from campus_library.models.user import User
from campus_library.extensions import db


class UserRepo:
    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)
