"""Error taxonomy shared by the ledger functions and the HTTP layer."""
from typing import Any


class TipMeError(Exception):
    status_code = 500

    def __init__(self, detail: Any = None):
        self.detail = detail if detail is not None else self.default_detail()
        super().__init__(str(self.detail))

    def default_detail(self) -> str:
        return "Internal Server Error"


class ValidationFailed(TipMeError):
    status_code = 400

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__({"formErrors": [], "fieldErrors": {field: [message]}})


class Unauthorized(TipMeError):
    status_code = 401

    def default_detail(self) -> str:
        return "Unauthorized"


class Forbidden(TipMeError):
    status_code = 403

    def default_detail(self) -> str:
        return "Forbidden"


class NotFound(TipMeError):
    status_code = 404

    def default_detail(self) -> str:
        return "Not found"


class Conflict(TipMeError):
    status_code = 409

    def default_detail(self) -> str:
        return "Conflict"
