"""Republish Find My iPhone device locations to an MQTT broker."""
from .const import VERSION
from .models import Credentials, DeviceSnapshot, ServerContext, SessionResponse
from .session import LocationSession
from .supervisor import Supervisor
from .worker import AccountWorker, ErrorPolicy, WorkerState

__version__ = VERSION

__all__ = [
    "AccountWorker",
    "Credentials",
    "DeviceSnapshot",
    "ErrorPolicy",
    "LocationSession",
    "ServerContext",
    "SessionResponse",
    "Supervisor",
    "WorkerState",
]
