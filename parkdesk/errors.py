class ParkDeskError(Exception):
    """Base class for errors raised by the operator desk."""


class EntryValidationError(ParkDeskError):
    pass


class RuleNotFound(ParkDeskError):
    """No pricing rule exists for a vehicle type. Not retryable."""

    def __init__(self, vehicle_type: str):
        super().__init__(f"No pricing rule found for vehicle type '{vehicle_type}'")
        self.vehicle_type = vehicle_type


class DuplicatePricingRule(ParkDeskError):
    def __init__(self, vehicle_type: str):
        super().__init__(f"More than one pricing rule for vehicle type '{vehicle_type}'")
        self.vehicle_type = vehicle_type


class SessionNotFound(ParkDeskError):
    def __init__(self, session_id: str):
        super().__init__(f"No active session '{session_id}'")
        self.session_id = session_id


class RemoteOperationError(ParkDeskError):
    """A GraphQL query or mutation was rejected or could not be delivered."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ExitInProgress(ParkDeskError):
    def __init__(self, session_id: str):
        super().__init__(f"Exit for session '{session_id}' is already being processed")
        self.session_id = session_id
