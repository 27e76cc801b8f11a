"""
Error taxonomy for the dating API.

Core functions raise these; main.py turns them into JSON responses of the
form {"detail": "..."} with the status code carried by the exception class.
"""


class AppError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthorized(AppError):
    status_code = 401

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail)


class InvalidCredentials(AppError):
    status_code = 401

    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(detail)


class EmailAlreadyRegistered(AppError):
    def __init__(self, detail: str = "Email already registered"):
        super().__init__(detail)


class DuplicateLike(AppError):
    def __init__(self, detail: str = "Already liked this user"):
        super().__init__(detail)


class InvalidLike(AppError):
    pass


class InvalidMessage(AppError):
    pass


class InvalidUpload(AppError):
    pass


class UserNotFound(AppError):
    status_code = 404

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id
