from campus_library.errors import AuthorizationError, NotFoundError, ValidationError
from campus_library.models.user import Role
from campus_library.repositories.user_repo import UserRepo


class UserService:
    """User-identity lookups the circulation core needs from the campus directory."""

    @staticmethod
    def resolve_actor(actor_id):
        user = UserRepo.get_by_id(actor_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def resolve_student(student_id):
        student = UserRepo.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        if student.role != Role.STUDENT:
            raise ValidationError("Books can only be lent to users with the student role")
        return student

    @staticmethod
    def require_staff(actor, college_id=None):
        """Librarian/HOD of the given college (any college when college_id is None)."""
        if actor.role not in Role.LIBRARY_STAFF:
            raise AuthorizationError("Only librarians and HODs can perform this action")
        if college_id is not None and actor.college_id != college_id:
            raise AuthorizationError("You do not have permission to manage another college's library")
        return actor
