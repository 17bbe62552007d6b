"""
Custom Exception Classes for the Air Quality Monitor

Hierarchical exception structure for error handling across services.
Routers translate these into HTTP responses.
"""


class AirMonitorError(Exception):
    """Base exception for all air quality monitor errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(AirMonitorError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class ValidationError(AirMonitorError):
    """Rejected input that passed schema parsing but breaks a domain rule"""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, recoverable=True)


class DeviceError(AirMonitorError):
    """Device lookup or registration errors"""

    def __init__(
        self,
        message: str,
        device_id: str | None = None,
        mac_address: str | None = None,
        recoverable: bool = True,
    ):
        self.device_id = device_id
        self.mac_address = mac_address
        super().__init__(f"Device Error: {message}", recoverable)


class IngestError(DeviceError):
    """Sensor payload could not be stored"""

    def __init__(
        self,
        message: str,
        device_id: str | None = None,
        mac_address: str | None = None,
    ):
        super().__init__(message, device_id, mac_address, recoverable=False)


class ReportDataError(AirMonitorError):
    """No data available for the requested report period"""

    def __init__(self, message: str, period: str | None = None):
        self.period = period
        super().__init__(message, recoverable=True)
