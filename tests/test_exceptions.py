"""Tests for the error taxonomy."""

import pytest

from conflict_mapper.exceptions import (
    CacheError,
    ConfigurationError,
    ErrorCode,
    KnownConflictsError,
    MalformedPluginMetadata,
    MapperError,
    PersistenceError,
    ScanError,
    ScanTimeoutError,
    SnapshotIntegrityError,
)


@pytest.mark.parametrize(
    "error_cls,code",
    [
        (ScanError, "CM100"),
        (MalformedPluginMetadata, "CM101"),
        (ConfigurationError, "CM200"),
        (KnownConflictsError, "CM201"),
        (PersistenceError, "CM300"),
        (SnapshotIntegrityError, "CM301"),
        (CacheError, "CM400"),
        (ScanTimeoutError, "CM500"),
    ],
)
def test_codes(error_cls, code):
    error = error_cls("something went wrong")
    assert error.code is ErrorCode(code)
    assert isinstance(error, MapperError)
    assert str(error) == f"[{code}] something went wrong"


def test_subclassing():
    assert issubclass(SnapshotIntegrityError, PersistenceError)
    assert issubclass(KnownConflictsError, ConfigurationError)


def test_recoverable_defaults():
    assert MalformedPluginMetadata("x").recoverable
    assert CacheError("x").recoverable
    assert not ScanError("x").recoverable


def test_to_json():
    error = ScanError("unreadable", context={"path": "/srv"})
    payload = error.to_json()
    assert payload["error_code"] == "CM100"
    assert payload["context"] == {"path": "/srv"}
    assert payload["recovery_hint"]


def test_raisable():
    with pytest.raises(PersistenceError) as exc_info:
        raise SnapshotIntegrityError("bad ids")
    assert exc_info.value.message == "bad ids"
