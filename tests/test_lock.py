import os

import pytest

from wgserver.errors import EngineBusy
from wgserver.lock import engine_lock


def test_lock_records_pid(settings):
    with engine_lock(settings):
        assert settings.lock_file.read_text() == str(os.getpid())
    assert settings.lock_file.read_text() == ""


def test_second_holder_is_refused(settings):
    with engine_lock(settings):
        with pytest.raises(EngineBusy) as exc:
            with engine_lock(settings, timeout=0.2):
                pass

    assert exc.value.exit_code == 6
    assert str(os.getpid()) in str(exc.value)


def test_lock_released_on_error(settings):
    with pytest.raises(RuntimeError):
        with engine_lock(settings):
            raise RuntimeError("boom")

    with engine_lock(settings, timeout=0.2):
        pass
