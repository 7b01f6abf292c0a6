import itertools
import logging
from unittest.mock import MagicMock

import pytest

from wgserver.config import Settings, save_settings
from wgserver.service import ServiceResult


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging() so caplog sees package records."""
    yield
    logger = logging.getLogger("wgserver")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory"""
    return Settings(
        config_dir=tmp_path / "wireguard",
        clients_dir=tmp_path / "clients",
        backup_dir=tmp_path / "backups",
        lock_file=tmp_path / "wgserver.lock",
        endpoint="vpn.example.com",
        qr_code=False,
        require_root=False,
    )


@pytest.fixture
def keygen():
    """Deterministic key provider: (privN=, pubN=) for N = 1, 2, ..."""
    counter = itertools.count(1)

    def _keygen():
        n = next(counter)
        return f"priv{n}=", f"pub{n}="

    return _keygen


@pytest.fixture
def service():
    """Daemon controller that always succeeds"""
    svc = MagicMock()
    svc.unit = "wg-quick@wg0"
    for action in ("reload", "start", "stop", "enable"):
        getattr(svc, action).return_value = ServiceResult.SUCCESS
    return svc


@pytest.fixture
def server(settings, keygen, service):
    """Provisioned server without clients; server keys are priv1=/pub1="""
    from wgserver.system import init_server

    init_server(settings, first_client=None, keygen=keygen, service=service)
    service.reset_mock()
    return settings


@pytest.fixture
def settings_file(tmp_path, settings):
    path = tmp_path / "wgserver.yaml"
    save_settings(settings, path)
    return path
