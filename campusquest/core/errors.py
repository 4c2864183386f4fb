from fastapi import status


class CampusQuestError(Exception):
    """Base for every failure the service reports to a caller.

    `status_code` is the HTTP status the boundary layer answers with and
    `category` is the message family shown to the user.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    category = "transient"
    reason = "error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail()
        super().__init__(self.detail)

    def default_detail(self) -> str:
        return "Something went wrong"


class Unauthenticated(CampusQuestError):
    status_code = status.HTTP_401_UNAUTHORIZED
    category = "permission"
    reason = "unauthenticated"

    def default_detail(self) -> str:
        return "Not authenticated"


class Forbidden(CampusQuestError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "permission"
    reason = "forbidden"

    def default_detail(self) -> str:
        return "You are not allowed to do this"


class NotFound(CampusQuestError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"
    reason = "not_found"

    def default_detail(self) -> str:
        return "Not found"


class OutOfRange(CampusQuestError):
    status_code = 422
    category = "distance"
    reason = "out_of_range"

    def default_detail(self) -> str:
        return "You must be inside the location radius to complete this"


class IncorrectAnswer(CampusQuestError):
    status_code = 422
    category = "wrong_answer"
    reason = "incorrect_answer"

    def default_detail(self) -> str:
        return "That answer is not correct"


class InvalidInput(CampusQuestError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "invalid_input"
    reason = "invalid_input"

    def default_detail(self) -> str:
        return "Invalid input"


class InvalidAnswerInput(InvalidInput):
    reason = "invalid_answer_input"

    def default_detail(self) -> str:
        return "That answer cannot be evaluated"


class ChallengeClosed(CampusQuestError):
    status_code = 422
    category = "expired"
    reason = "closed"

    def default_detail(self) -> str:
        return "This challenge is closed"


class StoreUnavailable(CampusQuestError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    category = "transient"
    reason = "store_unavailable"

    def __init__(self, step: str, detail: str | None = None):
        self.step = step
        super().__init__(detail)

    def default_detail(self) -> str:
        return f"The data store did not respond during {self.step}. Try again."


# Gating failures: returned before any mutation and never retried automatically
GATE_ERRORS = (Unauthenticated, Forbidden, OutOfRange, IncorrectAnswer, InvalidAnswerInput, ChallengeClosed)
