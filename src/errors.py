"""Error taxonomy for the diagnostic core.

Each error carries the HTTP status it maps to and a message that is safe
to show to the mechanic. The API layer renders them as ``{"error": ...}``.
"""

from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Une erreur est survenue. Veuillez réessayer."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DiagnosticError):
    """Bad user input. Carries every violated rule, not just the first."""

    status_code = 422
    default_message = "Données invalides"

    def __init__(self, messages: list[str], message: str | None = None):
        self.messages = list(messages)
        super().__init__(message or "; ".join(self.messages) or self.default_message)


class AuthenticationError(DiagnosticError):
    status_code = 401
    default_message = "Authorization header required"


class AuthorizationError(DiagnosticError):
    """Caller is not the owner, or the session does not exist.

    Both cases share one message so other users' sessions cannot be discovered.
    """

    status_code = 403
    default_message = "Session not found or access denied"


class SessionConflictError(DiagnosticError):
    status_code = 409
    default_message = "Ce diagnostic est déjà clôturé"


class UpstreamRateLimitedError(DiagnosticError):
    status_code = 429
    default_message = "Trop de requêtes. Veuillez réessayer dans quelques instants."


class UpstreamQuotaExhaustedError(DiagnosticError):
    status_code = 402
    default_message = "Crédit insuffisant pour l'IA. Veuillez contacter l'administrateur."


class UpstreamError(DiagnosticError):
    status_code = 500

    def __init__(self, status: int | str):
        self.upstream_status = status
        super().__init__(f"Erreur API IA: {status}")


class PersistenceError(DiagnosticError):
    status_code = 500
    default_message = "Erreur lors de l'enregistrement du diagnostic"


class ImageUploadError(PersistenceError):
    default_message = "Erreur lors de l'envoi des images"


class VehicleConflictError(Exception):
    """A vehicle with this VIN was inserted concurrently."""

    def __init__(self, vin: str):
        self.vin = vin
        super().__init__(f"Vehicle {vin} already exists")
