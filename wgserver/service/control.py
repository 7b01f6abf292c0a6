"""WireGuard service control.

Daemon interaction is best effort: inside containers or sandboxes systemd
is often missing, so command failures come back as DEGRADED rather than
raising.
"""

import logging
import subprocess
from enum import Enum
from pathlib import Path

from ..config import Settings
from ..utils import run

logger = logging.getLogger(__name__)

PAST_TENSE = {
    "reload": "Reloaded",
    "start": "Started",
    "stop": "Stopped",
    "enable": "Enabled",
}


class ServiceResult(Enum):
    """Outcome of a daemon call."""

    SUCCESS = "success"
    DEGRADED = "degraded"
    FATAL = "fatal"

    @property
    def ok(self) -> bool:
        return self is ServiceResult.SUCCESS


class WireGuardService:
    """Controls the wg-quick systemd unit for one interface."""

    def __init__(self, interface: str, config_path: Path):
        self.interface = interface
        self.config_path = Path(config_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> 'WireGuardService':
        return cls(settings.interface, settings.server_config_path)

    @property
    def unit(self) -> str:
        return f"wg-quick@{self.interface}"

    def _systemctl(self, action: str) -> ServiceResult:
        try:
            run(["systemctl", action, self.unit])
        except FileNotFoundError:
            logger.warning("systemctl not available, cannot %s %s", action, self.unit)
            return ServiceResult.DEGRADED
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or '').strip() or f"exit status {e.returncode}"
            logger.warning("Failed to %s %s: %s", action, self.unit, detail)
            return ServiceResult.DEGRADED
        except subprocess.TimeoutExpired:
            logger.warning("Timed out trying to %s %s", action, self.unit)
            return ServiceResult.DEGRADED

        logger.info("%s %s", PAST_TENSE.get(action, action), self.unit)
        return ServiceResult.SUCCESS

    def reload(self) -> ServiceResult:
        """
        Make the running interface re-read its config without taking it down.

        Returns:
            FATAL if the config file is missing, DEGRADED if the daemon could
            not be reached, SUCCESS otherwise
        """
        if not self.config_path.exists():
            logger.error("Configuration not found: %s", self.config_path)
            return ServiceResult.FATAL
        return self._systemctl("reload")

    def start(self) -> ServiceResult:
        return self._systemctl("start")

    def stop(self) -> ServiceResult:
        return self._systemctl("stop")

    def enable(self) -> ServiceResult:
        return self._systemctl("enable")
