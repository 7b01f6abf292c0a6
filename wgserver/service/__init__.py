"""Service management modules."""

from .control import ServiceResult, WireGuardService
