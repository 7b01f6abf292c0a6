from unittest.mock import patch

from wgserver.clients.export import (
    delete_artifacts, emit, format_endpoint, render_client_config, write_qr_png,
)
from wgserver.clients.qrcode import render_terminal_qr, show_config


def _render(**overrides):
    args = dict(
        private_key="clientpriv=",
        address="10.66.66.2",
        server_public_key="serverpub=",
        endpoint="vpn.example.com:51820",
        dns="1.1.1.1, 1.0.0.1",
    )
    args.update(overrides)
    return render_client_config(**args)


def test_client_config_is_full_tunnel():
    assert _render() == (
        "[Interface]\n"
        "PrivateKey = clientpriv=\n"
        "Address = 10.66.66.2/32\n"
        "DNS = 1.1.1.1, 1.0.0.1\n"
        "\n"
        "[Peer]\n"
        "PublicKey = serverpub=\n"
        "AllowedIPs = 0.0.0.0/0\n"
        "Endpoint = vpn.example.com:51820\n"
        "PersistentKeepalive = 25\n"
    )


def test_client_config_without_dns_or_keepalive():
    text = _render(dns="", keepalive=0)
    assert "DNS" not in text
    assert "PersistentKeepalive" not in text


def test_format_endpoint():
    assert format_endpoint("203.0.113.5", 51820) == "203.0.113.5:51820"
    assert format_endpoint("vpn.example.com", 443) == "vpn.example.com:443"
    assert format_endpoint("2001:db8::1", 51820) == "[2001:db8::1]:51820"


def test_emit_writes_private_config(settings):
    conf_path, qr_path = emit(
        name="laptop",
        private_key="clientpriv=",
        address="10.66.66.2",
        server_public_key="serverpub=",
        endpoint="vpn.example.com:51820",
        dns=settings.dns,
        settings=settings,
    )

    assert conf_path == settings.clients_dir / "laptop.conf"
    assert conf_path.stat().st_mode & 0o777 == 0o600
    assert "PrivateKey = clientpriv=" in conf_path.read_text()
    assert qr_path is None


def test_emit_with_qr(settings):
    _, qr_path = emit(
        name="phone",
        private_key="clientpriv=",
        address="10.66.66.3",
        server_public_key="serverpub=",
        endpoint="vpn.example.com:51820",
        dns=settings.dns,
        settings=settings,
        qr=True,
    )

    assert qr_path == settings.clients_dir / "phone.png"
    assert qr_path.read_bytes().startswith(b"\x89PNG")


def test_qr_failure_is_not_fatal(tmp_path):
    with patch("wgserver.clients.export.qrcode.QRCode", side_effect=RuntimeError("no PIL")):
        assert write_qr_png("text", tmp_path / "x.png") is None
    assert not (tmp_path / "x.png").exists()


def test_delete_artifacts(settings):
    settings.clients_dir.mkdir(parents=True)
    (settings.clients_dir / "laptop.conf").write_text("x")
    (settings.clients_dir / "laptop.png").write_bytes(b"x")

    removed = delete_artifacts("laptop", settings)

    assert len(removed) == 2
    assert delete_artifacts("laptop", settings) == []


def test_terminal_qr_falls_back_to_python(tmp_path):
    with patch("wgserver.clients.qrcode.run", side_effect=FileNotFoundError("qrencode")):
        out = render_terminal_qr("[Interface]\n")
    assert out.strip()


def test_show_config_prints_artifact(settings, capsys):
    from rich.console import Console

    settings.clients_dir.mkdir(parents=True)
    (settings.clients_dir / "laptop.conf").write_text("[Interface]\nPrivateKey = clientpriv=\n")

    show_config("laptop", settings, console=Console(width=120))

    assert "PrivateKey = clientpriv=" in capsys.readouterr().out
