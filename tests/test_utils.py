import subprocess
from unittest.mock import MagicMock, patch

import pytest

from wgserver.errors import KeyGenerationError
from wgserver.utils import atomic_write, generate_keypair, get_public_ip, is_inside


@patch("wgserver.utils.run")
def test_generate_keypair(mock_run):
    mock_run.side_effect = [
        MagicMock(stdout="privkey=\n"),
        MagicMock(stdout="pubkey=\n"),
    ]

    assert generate_keypair() == ("privkey=", "pubkey=")
    mock_run.assert_called_with(["wg", "pubkey"], input_text="privkey=")


@patch("wgserver.utils.run", side_effect=FileNotFoundError("wg"))
def test_generate_keypair_without_wg(mock_run):
    with pytest.raises(KeyGenerationError):
        generate_keypair()


@patch("wgserver.utils.run")
def test_generate_keypair_empty_output(mock_run):
    mock_run.return_value = MagicMock(stdout="")
    with pytest.raises(KeyGenerationError):
        generate_keypair()


@patch("wgserver.utils.run")
def test_public_ip_from_service(mock_run):
    mock_run.return_value = MagicMock(returncode=0, stdout="203.0.113.5\n")
    assert get_public_ip() == "203.0.113.5"


@patch("wgserver.utils.socket.socket", side_effect=OSError("no network"))
@patch("wgserver.utils.run", side_effect=subprocess.TimeoutExpired(["curl"], 5))
def test_public_ip_placeholder(mock_run, mock_socket):
    assert get_public_ip() == "YOUR_SERVER_IP"


def test_atomic_write(tmp_path):
    path = tmp_path / "sub" / "file.txt"
    atomic_write(path, "one")
    atomic_write(path, "two", mode=0o644)

    assert path.read_text() == "two"
    assert path.stat().st_mode & 0o777 == 0o644
    assert [p.name for p in path.parent.iterdir()] == ["file.txt"]


def test_is_inside(tmp_path):
    (tmp_path / "wireguard").mkdir()
    (tmp_path / "link").symlink_to(tmp_path / "wireguard")

    assert is_inside(tmp_path / "wireguard" / "backups", tmp_path / "wireguard")
    assert is_inside(tmp_path / "link" / "wgserver.lock", tmp_path / "wireguard")
    assert not is_inside(tmp_path / "wireguard-backups", tmp_path / "wireguard")
