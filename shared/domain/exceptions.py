"""
Domain Errors

Base class for errors raised by domain and application code.
Each error knows the HTTP status it maps to, so the API layer can
render it without knowing the concrete type.
"""


class DomainError(Exception):
    """Base class for all typed domain errors"""

    status_code = 400
    code = 'domain_error'

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code, **self.details}
