from __future__ import annotations


class CareoError(Exception):
    code = "careo_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(CareoError):
    code = "not_found"
    status_code = 404


class Conflict(CareoError):
    code = "conflict"
    status_code = 409
