import hashlib
from uuid import UUID

from workplace.services.locking import LocalLockProvider, build_lock_key, lock_id_for

SCOPE = UUID("11111111-2222-3333-4444-555555555555")


def test_lock_key_uses_upper_sha1_of_casefolded_name():
    digest = hashlib.sha1("north".encode("utf-8")).hexdigest().upper()
    assert build_lock_key("regions", SCOPE, "North") == f"regions_Name_{SCOPE}_{digest}"


def test_lock_key_is_case_insensitive():
    assert build_lock_key("regions", SCOPE, "NORTH") == build_lock_key("regions", SCOPE, "north")


def test_unscoped_lock_key_for_organizations():
    digest = hashlib.sha1("acme".encode("utf-8")).hexdigest().upper()
    assert build_lock_key("organizations", None, "Acme") == f"organizations_Name_{digest}"


def test_scopes_produce_distinct_keys():
    other = UUID("99999999-2222-3333-4444-555555555555")
    assert build_lock_key("functions", SCOPE, "Sales") != build_lock_key("functions", other, "Sales")


def test_lock_id_fits_signed_bigint():
    value = lock_id_for("regions_Name_x_ABC")
    assert -(2**63) <= value < 2**63
    assert value == lock_id_for("regions_Name_x_ABC")


def test_local_lock_is_zero_wait(db_session):
    provider = LocalLockProvider()
    first = provider.try_acquire(db_session, "k")
    assert first is not None
    assert provider.try_acquire(db_session, "k") is None
    assert provider.try_acquire(db_session, "other") is not None

    first.release()
    first.release()
    assert not provider.is_held("k")
    assert provider.try_acquire(db_session, "k") is not None
