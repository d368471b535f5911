"""访问控制测试：匿名凭证、归属校验与分享令牌。"""

import uuid

import pytest

from app.packages.filevault.crud.file_record import anonymous_file_crud, owned_file_crud
from app.packages.filevault.services.access_service import (
    DENIED,
    Denied,
    FileHandle,
    capability_resolver,
    new_access_token,
    new_file_id,
    new_secret_key,
    ownership_resolver,
    parse_owned_id,
)


def _anonymous_row(db):
    file_id = new_file_id()
    secret_key = new_secret_key()
    anonymous_file_crud.insert_anonymous(
        db,
        {
            "file_id": file_id,
            "secret_key": secret_key,
            "storage_key": f"{file_id}-note.txt",
            "original_filename": "note.txt",
            "content_type": "text/plain",
            "byte_size": 4,
            "storage_url": f"memory://{file_id}-note.txt",
        },
    )
    return file_id, secret_key


def _owned_row(db, owner_id, *, filename="a.txt", size=10, content_type="text/plain"):
    return owned_file_crud.insert_owned(
        db,
        {
            "owner_user_id": owner_id,
            "filename": filename,
            "storage_key": f"user-{owner_id}/{uuid.uuid4().hex[:16]}-{filename}",
            "byte_size": size,
            "content_type": content_type,
            "is_public": False,
            "access_token": None,
        },
    )


def test_capability_tokens_have_expected_shape():
    ids = {new_file_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(len(value) == 10 and int(value, 16) >= 0 for value in ids)
    assert len(new_secret_key()) == 32
    assert len(new_access_token()) == 32


def test_denied_is_a_falsy_singleton():
    assert Denied() is DENIED
    assert not DENIED
    assert repr(DENIED) == "DENIED"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (5, 5),
        ("12", 12),
        (" 3 ", 3),
        ("0", None),
        (-1, None),
        ("abc", None),
        ("1.5", None),
        (None, None),
        (True, None),
        ("²", None),
        ("١٢", None),
        (str(2**63), None),
    ],
)
def test_parse_owned_id(raw, expected):
    assert parse_owned_id(raw) == expected


def test_capability_resolves_with_exact_pair(db_session_fixture):
    file_id, secret_key = _anonymous_row(db_session_fixture)

    handle = capability_resolver.resolve(db_session_fixture, file_id, secret_key)

    assert isinstance(handle, FileHandle)
    assert handle.file_id == file_id
    assert handle.filename == "note.txt"
    assert handle.storage_key == f"{file_id}-note.txt"


def test_capability_denials_are_indistinguishable(db_session_fixture):
    file_id, secret_key = _anonymous_row(db_session_fixture)
    other_id, other_secret = _anonymous_row(db_session_fixture)

    results = [
        capability_resolver.resolve(db_session_fixture, "0000000000", secret_key),
        capability_resolver.resolve(db_session_fixture, file_id, "0" * 32),
        capability_resolver.resolve(db_session_fixture, file_id, other_secret),
        capability_resolver.resolve(db_session_fixture, other_id, secret_key),
        capability_resolver.resolve(db_session_fixture, file_id, None),
        capability_resolver.resolve(db_session_fixture, "", secret_key),
    ]
    assert all(result is DENIED for result in results)


def test_ownership_isolates_private_files(db_session_fixture, make_owner):
    alice, bob = make_owner(), make_owner()
    row = _owned_row(db_session_fixture, alice)

    assert isinstance(ownership_resolver.resolve_for_read(db_session_fixture, row.id, alice), FileHandle)
    assert ownership_resolver.resolve_for_read(db_session_fixture, row.id, bob) is DENIED
    assert ownership_resolver.resolve_for_write(db_session_fixture, row.id, bob) is DENIED
    # 不存在的 ID 与他人文件结果一致
    assert ownership_resolver.resolve_for_read(db_session_fixture, 10_000_000, bob) is DENIED
    assert ownership_resolver.resolve_for_read(db_session_fixture, "not-a-number", alice) is DENIED


def test_public_file_is_readable_but_not_writable_by_others(db_session_fixture, make_owner):
    alice, bob = make_owner(), make_owner()
    row = _owned_row(db_session_fixture, alice)

    token = ownership_resolver.mint(db_session_fixture, row.id, alice)
    assert isinstance(token, str)

    handle = ownership_resolver.resolve_for_read(db_session_fixture, row.id, bob)
    assert isinstance(handle, FileHandle)
    assert handle.is_public is True
    assert ownership_resolver.resolve_for_write(db_session_fixture, row.id, bob) is DENIED
    assert ownership_resolver.mint(db_session_fixture, row.id, bob) is DENIED


def test_mint_sets_public_and_token_together_and_rotates(db_session_fixture, make_owner):
    owner = make_owner()
    row = _owned_row(db_session_fixture, owner)

    first = ownership_resolver.mint(db_session_fixture, row.id, owner)
    second = ownership_resolver.mint(db_session_fixture, row.id, owner)

    assert first != second
    db_session_fixture.expire_all()
    fresh = owned_file_crud.find_owned_by_id(db_session_fixture, row.id)
    assert fresh.is_public is True
    assert fresh.access_token == second

    # 旧令牌失效，新令牌可解析
    assert ownership_resolver.resolve_shared(db_session_fixture, first) is DENIED
    shared = ownership_resolver.resolve_shared(db_session_fixture, second)
    assert isinstance(shared, FileHandle)
    assert shared.file_id == row.id


def test_resolve_shared_rejects_empty_and_unknown_tokens(db_session_fixture):
    assert ownership_resolver.resolve_shared(db_session_fixture, "") is DENIED
    assert ownership_resolver.resolve_shared(db_session_fixture, None) is DENIED
    assert ownership_resolver.resolve_shared(db_session_fixture, "f" * 32) is DENIED


def test_delete_owned_only_affects_owner_rows(db_session_fixture, make_owner):
    alice, bob = make_owner(), make_owner()
    row = _owned_row(db_session_fixture, alice)

    assert owned_file_crud.delete_owned(db_session_fixture, row.id, bob) == 0
    assert owned_file_crud.delete_owned(db_session_fixture, row.id, alice) == 1
    assert ownership_resolver.resolve_for_read(db_session_fixture, row.id, alice) is DENIED
