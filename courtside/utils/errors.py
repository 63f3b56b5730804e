from starlette import status
from starlette.exceptions import HTTPException


class EngineError(HTTPException):
    """
    Base class for rejections raised by the standings, rating and playoff engine.

    These represent caller or input errors, so they are never retried. They derive from
    HTTPException so FastAPI renders them without extra handlers.
    """

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.status_code_default, detail=detail)


class InvalidMatchState(EngineError):
    status_code_default = status.HTTP_409_CONFLICT


class InsufficientPlayers(EngineError):
    status_code_default = status.HTTP_400_BAD_REQUEST


class LockedSnapshotViolation(EngineError):
    status_code_default = status.HTTP_409_CONFLICT


class FeederNotReady(EngineError):
    status_code_default = status.HTTP_409_CONFLICT


class InconsistentScore(EngineError):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class MissingRegistration(EngineError):
    status_code_default = status.HTTP_404_NOT_FOUND


class NotFound(EngineError):
    status_code_default = status.HTTP_404_NOT_FOUND
