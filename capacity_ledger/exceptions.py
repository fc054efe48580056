"""
Erreurs métier du registre de capacité / Capacity ledger domain errors.

Chaque erreur porte un code stable et le statut HTTP que l'API renvoie.
Each error carries a stable code and the HTTP status the API returns.
"""


class LedgerError(Exception):
    """Erreur métier de base / Base domain error."""

    status_code: int = 400
    default_message: str = "Ledger operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidBookingRequest(LedgerError):
    status_code = 422
    default_message = "Invalid booking request"


class LaneNotFound(LedgerError):
    status_code = 404
    default_message = "Lane not found"


class LaneClosedForBookings(LedgerError):
    status_code = 409
    default_message = "Lane is closed for new bookings"


class CapabilityMismatch(LedgerError):
    status_code = 422
    default_message = "Lane does not have required capabilities"


class IntervalsMissing(LedgerError):
    """Aucun créneau généré pour la fenêtre / No intervals generated for the window.

    Non réessayable tant que la génération des créneaux n'a pas tourné.
    Not retryable until interval seeding runs.
    """
    status_code = 422
    default_message = "No capacity intervals found for delivery window"


class CapacityExceeded(LedgerError):
    status_code = 409
    default_message = "Not enough remaining capacity for this slot"


class ConcurrencyConflict(LedgerError):
    """Conflit de sérialisation après épuisement des reprises / Serialization conflict after retries ran out."""
    status_code = 409
    default_message = "The ledger is busy, please retry"


class BookingNotFound(LedgerError):
    status_code = 404
    default_message = "Booking not found"


class AlreadyCancelled(LedgerError):
    status_code = 409
    default_message = "Booking is already cancelled"


class BookingNotCancellable(LedgerError):
    status_code = 409
    default_message = "Booking can no longer be cancelled"


class CancellationWindowClosed(LedgerError):
    status_code = 409
    default_message = "Cancellations are no longer allowed for this booking"


class ContributionInUse(LedgerError):
    status_code = 409
    default_message = "Contribution capacity is already booked"
