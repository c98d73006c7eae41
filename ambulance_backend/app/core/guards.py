"""
Security guards for role-based and hospital-scoped access control.

Provides dependencies and checks for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from ambulance_backend.app.models.enums import UserRole, HOSPITAL_ROLES
from ambulance_backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.get("/hospitals/{hospital_id}/drivers")
        async def list_drivers(current_user: dict = Depends(require_role(HOSPITAL_ROLES))):
            ...
    
    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        check_role(current_user, allowed_roles)
        return current_user
    
    return role_checker


def check_role(current_user: dict, allowed_roles: List[UserRole]) -> None:
    try:
        user_role = UserRole(current_user.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )
    
    if user_role not in allowed_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
        )


def is_hospital_user(current_user: dict) -> bool:
    return current_user.get("role") in [r.value for r in HOSPITAL_ROLES]


def require_driver_access(driver_id: str, current_user: dict) -> None:
    """
    Allow hospital users, or the driver acting on their own document.
    
    Raises:
        HTTPException 403 otherwise
    """
    if is_hospital_user(current_user):
        return
    if current_user.get("role") == UserRole.AMBULANCE_DRIVER.value and current_user.get("sub") == driver_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied. You can only act on your own driver record."
    )


class HospitalGuard:
    """
    Hospital-scoped guard for fleet resources.
    
    Usage:
        hospital_guard = HospitalGuard()
        
        ambulance = await AmbulanceRegistry.get_ambulance(db, ambulance_id)
        hospital_guard.enforce(ambulance.hospital_id, current_user, "ambulance")
    """
    
    def has_access(self, hospital_id: Optional[str], current_user: dict) -> bool:
        if not is_hospital_user(current_user):
            return False
        return current_user.get("hospital_id") == hospital_id
    
    def enforce(
        self,
        hospital_id: Optional[str],
        current_user: dict,
        resource_name: str = "resource"
    ):
        """
        Raise 403 unless the user works for the hospital that owns the resource.
        """
        if not self.has_access(hospital_id, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )
