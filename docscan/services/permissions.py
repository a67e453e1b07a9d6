"""
Camera / photo library permission gating.

The gate owns no state: it reads the platform permission status through a
``PermissionProvider`` and, when the platform still allows it, prompts once.
"""

from enum import Enum
from typing import Protocol
from loguru import logger
from ..core.errors import PermissionDenied, PermissionPermanentlyDenied


class PlatformPermission(str, Enum):
    """Raw status as reported by the platform"""
    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    LIMITED = "limited"
    DENIED = "denied"
    PERMANENTLY_DENIED = "permanently_denied"
    RESTRICTED = "restricted"


class PermissionStatus(str, Enum):
    """Outcome reported to callers of the gate"""
    GRANTED = "granted"
    DENIED = "denied"
    PERMANENTLY_DENIED = "permanently_denied"

    def raise_for_status(self) -> None:
        if self is PermissionStatus.PERMANENTLY_DENIED:
            raise PermissionPermanentlyDenied()
        if self is PermissionStatus.DENIED:
            raise PermissionDenied()


class PermissionProvider(Protocol):
    async def status(self, permission: str) -> PlatformPermission: ...

    async def request(self, permission: str) -> PlatformPermission: ...

    async def open_settings(self) -> bool: ...


class StaticPermissionProvider:
    """
    Provider with a fixed status, for desktop/server contexts where there is
    no platform prompt (a folder or an HTTP upload is the capture source).
    """

    def __init__(self, status: PlatformPermission = PlatformPermission.GRANTED):
        self._status = status

    async def status(self, permission: str) -> PlatformPermission:
        return self._status

    async def request(self, permission: str) -> PlatformPermission:
        return self._status

    async def open_settings(self) -> bool:
        return False


_PROMPTABLE = {PlatformPermission.NOT_DETERMINED, PlatformPermission.DENIED}
_BLOCKED = {PlatformPermission.PERMANENTLY_DENIED, PlatformPermission.RESTRICTED}


class PermissionGate:
    CAMERA = "camera"
    PHOTOS = "photos"

    def __init__(self, provider: PermissionProvider):
        self.provider = provider

    async def ensure_camera_access(self) -> PermissionStatus:
        """
        Check camera authorization, prompting at most once.

        Returns:
            GRANTED, DENIED (may be asked again later) or PERMANENTLY_DENIED
            (the platform will not prompt; offer the settings affordance)
        """
        return await self._ensure(self.CAMERA, accept_limited=False)

    async def ensure_photo_access(self) -> PermissionStatus:
        """Same as camera access, but limited photo library access counts as granted"""
        return await self._ensure(self.PHOTOS, accept_limited=True)

    async def open_settings(self) -> bool:
        return await self.provider.open_settings()

    async def _ensure(self, permission: str, accept_limited: bool) -> PermissionStatus:
        current = await self.provider.status(permission)
        outcome = self._classify(current, accept_limited)
        if outcome is not None:
            logger.debug("Permission status", permission=permission, status=current.value)
            return outcome

        logger.info("Requesting permission", permission=permission)
        result = await self.provider.request(permission)
        outcome = self._classify(result, accept_limited)
        if outcome is None:
            # Still undetermined or plain denied after a single prompt
            outcome = PermissionStatus.DENIED

        logger.info("Permission request finished", permission=permission, status=outcome.value)
        return outcome

    @staticmethod
    def _classify(status: PlatformPermission, accept_limited: bool) -> PermissionStatus | None:
        if status is PlatformPermission.GRANTED:
            return PermissionStatus.GRANTED
        if status is PlatformPermission.LIMITED:
            return PermissionStatus.GRANTED if accept_limited else PermissionStatus.DENIED
        if status in _BLOCKED:
            return PermissionStatus.PERMANENTLY_DENIED
        if status in _PROMPTABLE:
            return None
        return PermissionStatus.DENIED
