"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Lifecycle / control
  2xxx: Policy oracle
  3xxx: Settlement
  4xxx: Pricing
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Lifecycle / control ---

class ConflictError(AppError):
    def __init__(self, reason: str) -> None:
        super().__init__(1001, f"Cannot start: {reason}", 409)
        self.reason = reason


class InitializationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, f"Start failed: {detail}", 500)


class SimulationNotRunningError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Market not initialized. Start the simulation first", 503)


class InvalidControlActionError(AppError):
    def __init__(self, action: str) -> None:
        super().__init__(1004, f'Invalid action {action!r}: must be "start" or "stop"', 400)


# --- 2xxx: Policy oracle ---

class OracleError(AppError):
    def __init__(self, participant_id: str, detail: str) -> None:
        super().__init__(2001, f"Decision failed for {participant_id}: {detail}", 502)
        self.participant_id = participant_id


# --- 3xxx: Settlement ---

class SettlementError(AppError):
    def __init__(self, participant_id: str, detail: str) -> None:
        super().__init__(3001, f"Settlement failed for {participant_id}: {detail}", 502)
        self.participant_id = participant_id


# --- 4xxx: Pricing ---

class PricingFault(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Pricing fault: {detail}", 500)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9001, detail, 500)
