from __future__ import annotations


class TaskmateError(Exception):
  status_code = 500
  default_message = "Server error"

  def __init__(self, message: str | None = None) -> None:
    self.message = message or self.default_message
    super().__init__(self.message)


class Unauthenticated(TaskmateError):
  status_code = 401
  default_message = "Authentication required"


class NotFound(TaskmateError):
  status_code = 404
  default_message = "Not found"


class InvalidInput(TaskmateError):
  status_code = 400
  default_message = "Invalid input"


class Conflict(TaskmateError):
  status_code = 400
  default_message = "User already exists"


class InvalidCredentials(TaskmateError):
  status_code = 400
  default_message = "Invalid credentials"


class Internal(TaskmateError):
  status_code = 500
  default_message = "Server error"
