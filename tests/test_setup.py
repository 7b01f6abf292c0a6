import dataclasses

import pytest

from wgserver.errors import ServerExists
from wgserver.registry import ClientStore
from wgserver.serverconf import load_server_config
from wgserver.system import init_server


def test_init_server(settings, keygen, service):
    result = init_server(settings, keygen=keygen, service=service)

    text = settings.server_config_path.read_text()
    assert text.startswith("[Interface]\nAddress = 10.66.66.1/24\nListenPort = 51820\nPrivateKey = priv1=\n")
    assert "PostUp = iptables -A FORWARD -i wg0 -j ACCEPT" in text
    assert "$(ip route | awk '/default/ { print $5 }')" in text

    assert result["public_key"] == "pub1="
    assert settings.server_public_key_path.read_text().strip() == "pub1="
    assert settings.server_private_key_path.stat().st_mode & 0o777 == 0o600
    assert settings.server_public_key_path.stat().st_mode & 0o777 == 0o644
    assert settings.server_config_path.stat().st_mode & 0o777 == 0o600
    assert settings.config_dir.stat().st_mode & 0o777 == 0o700

    service.enable.assert_called_once()
    service.start.assert_called_once()
    service.reload.assert_not_called()


def test_first_client_is_tagged(settings, keygen, service):
    result = init_server(settings, keygen=keygen, service=service)

    assert result["client"]["name"] == "client1"
    assert result["client"]["address"] == "10.66.66.2"
    assert [r.name for r in ClientStore(settings.registry_path).list()] == ["client1"]
    assert load_server_config(settings.server_config_path).peer_names() == ["client1"]


def test_external_interface(settings, keygen, service):
    settings = dataclasses.replace(settings, external_interface="eth0")
    init_server(settings, first_client=None, keygen=keygen, service=service)
    assert "POSTROUTING -o eth0 -j MASQUERADE" in settings.server_config_path.read_text()


def test_refuses_to_overwrite(settings, keygen, service):
    init_server(settings, keygen=keygen, service=service)
    before = settings.server_config_path.read_bytes()

    with pytest.raises(ServerExists) as exc:
        init_server(settings, keygen=keygen, service=service)

    assert exc.value.exit_code == 3
    assert settings.server_config_path.read_bytes() == before


def test_force_resets_registry(settings, keygen, service):
    init_server(settings, keygen=keygen, service=service)

    init_server(settings, first_client="router", keygen=keygen, service=service, force=True)

    assert [r.name for r in ClientStore(settings.registry_path).list()] == ["router"]
    assert load_server_config(settings.server_config_path).peer_names() == ["router"]


def test_start_failure_is_not_fatal(settings, keygen, service):
    from wgserver.service import ServiceResult

    service.start.return_value = ServiceResult.DEGRADED
    result = init_server(settings, keygen=keygen, service=service)
    assert result["start"] is ServiceResult.DEGRADED
    assert settings.server_config_path.exists()
