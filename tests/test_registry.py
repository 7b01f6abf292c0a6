import pytest

from wgserver.errors import ClientExists, ClientNotFound, InvalidClientName, RegistryError
from wgserver.models import ClientRecord, validate_client_name
from wgserver.registry import ClientStore


@pytest.fixture
def store(tmp_path):
    return ClientStore(tmp_path / "clients.db", clock=lambda: 1700000000)


def test_add_appends_line(store):
    store.add("laptop", "10.66.66.2", "pubA=")
    store.add("phone", "10.66.66.3", "pubB=")

    assert store.path.read_text() == (
        "laptop:10.66.66.2:pubA=:1700000000\n"
        "phone:10.66.66.3:pubB=:1700000000\n"
    )
    assert [r.name for r in store.list()] == ["laptop", "phone"]
    assert store.addresses() == {"10.66.66.2", "10.66.66.3"}


def test_registry_file_is_private(store):
    store.add("laptop", "10.66.66.2", "pubA=")
    assert store.path.stat().st_mode & 0o777 == 0o600


def test_add_duplicate_name(store):
    store.add("laptop", "10.66.66.2", "pubA=")
    with pytest.raises(ClientExists):
        store.add("laptop", "10.66.66.3", "pubB=")
    assert len(store.list()) == 1


def test_add_duplicate_address(store):
    store.add("laptop", "10.66.66.2", "pubA=")
    with pytest.raises(RegistryError):
        store.add("phone", "10.66.66.2", "pubB=")


def test_add_invalid_name(store):
    with pytest.raises(InvalidClientName):
        store.add("my phone", "10.66.66.2", "pubA=")
    assert not store.path.exists()


def test_add_after_missing_trailing_newline(store):
    store.path.write_text("laptop:10.66.66.2:pubA=:1")
    store.add("phone", "10.66.66.3", "pubB=")
    assert [r.name for r in store.list()] == ["laptop", "phone"]


def test_remove_keeps_order(store):
    for i, name in enumerate(["a", "b", "c"], 2):
        store.add(name, f"10.66.66.{i}", f"pub{name}=")

    removed = store.remove("b")

    assert removed.address == "10.66.66.3"
    assert [r.name for r in store.list()] == ["a", "c"]


def test_remove_missing(store):
    store.initialize()
    with pytest.raises(ClientNotFound) as exc:
        store.remove("ghost")
    assert exc.value.exit_code == 2


def test_get(store):
    store.add("laptop", "10.66.66.2", "pubA=")
    assert store.get("laptop").public_key == "pubA="
    with pytest.raises(ClientNotFound):
        store.get("phone")


def test_missing_file_lists_empty(store):
    assert store.list() == []
    with pytest.raises(RegistryError):
        store.require()


def test_malformed_line_reports_location(store):
    store.path.write_text("laptop:10.66.66.2:pubA=:1\nbroken line\n")
    with pytest.raises(RegistryError, match=r"clients\.db:2"):
        store.list()


def test_blank_lines_are_skipped(store):
    store.path.write_text("\nlaptop:10.66.66.2:pubA=:1\n\n")
    assert [r.name for r in store.list()] == ["laptop"]


def test_record_from_line():
    record = ClientRecord.from_line("phone:10.66.66.3:abc+/=:1700000000\n")
    assert record == ClientRecord("phone", "10.66.66.3", "abc+/=", 1700000000)
    assert record.to_line() == "phone:10.66.66.3:abc+/=:1700000000"


@pytest.mark.parametrize("line", [
    "phone:10.66.66.3:key",
    "phone:10.66.66.3:key:notanumber",
    "bad name:10.66.66.3:key:1",
])
def test_record_from_bad_line(line):
    with pytest.raises(RegistryError):
        ClientRecord.from_line(line)


@pytest.mark.parametrize("name", ["", "a b", "a:b", "a/b", "ä"])
def test_invalid_client_names(name):
    with pytest.raises(InvalidClientName):
        validate_client_name(name)


def test_valid_client_name():
    assert validate_client_name("My_Phone-2") == "My_Phone-2"


@pytest.mark.parametrize("address, public_key", [
    ("fd00::2", "pubA="),
    ("10.66.66.2", "pub:A="),
])
def test_record_refuses_delimiter_in_fields(store, address, public_key):
    record = ClientRecord("laptop", address, public_key, 1700000000)
    with pytest.raises(RegistryError):
        record.to_line()

    with pytest.raises(RegistryError):
        store.add("laptop", address, public_key)
    assert not store.path.exists() or store.path.read_text() == ""


def test_add_outside_subnet(tmp_path):
    store = ClientStore(tmp_path / "clients.db", subnet="10.66.66.0/24")

    with pytest.raises(RegistryError) as exc:
        store.add("laptop", "10.66.67.2", "pubA=")
    assert "outside subnet" in str(exc.value)

    assert store.add("laptop", "10.66.66.2", "pubA=").address == "10.66.66.2"
