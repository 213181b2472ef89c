"""Enums for the maintenance engine - these define the valid values for status, priority and category."""
from enum import Enum


class RequestStatus(str, Enum):
    """
    The five states a MaintenanceRequest can be in. No other states are allowed.

    Any state may move to any other; Completed and Cancelled are terminal by
    convention only.
    """
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Category(str, Enum):
    HARDWARE = "Hardware"
    SOFTWARE = "Software"
    NETWORK = "Network"
    GENERAL = "General"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"
