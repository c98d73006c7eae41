"""
Enumerations shared by the user and ambulance collections.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        HOSPITAL_ADMIN: Manages a hospital's fleet and staff
        HOSPITAL_STAFF: Dispatches ambulances for a hospital
        AMBULANCE_DRIVER: Operates one or more assigned ambulances
        POLICE: Clears routes; no access to the fleet ledger
    """
    HOSPITAL_ADMIN = "hospital_admin"
    HOSPITAL_STAFF = "hospital_staff"
    AMBULANCE_DRIVER = "ambulance_driver"
    POLICE = "police"


class AmbulanceStatus(str, enum.Enum):
    """
    Ambulance status values.
    
    Stored as plain strings; unknown values read back as-is.
    """
    AVAILABLE = "available"
    ON_DUTY = "on_duty"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


HOSPITAL_ROLES = [UserRole.HOSPITAL_ADMIN, UserRole.HOSPITAL_STAFF]
