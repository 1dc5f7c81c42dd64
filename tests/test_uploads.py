import pytest

from cashflow.uploads import storage


@pytest.fixture
def stored_file(upload_dir, employee):
    user_dir = upload_dir / employee.email
    user_dir.mkdir()
    path = user_dir / "1700000000000-receipt.pdf"
    path.write_bytes(b"%PDF-1.4")
    return path


def test_owner_can_fetch_file(login, employee, stored_file):
    response = login(employee).get(f"/api/uploads/{employee.email}/{stored_file.name}")
    assert response.status_code == 200
    assert response.content == b"%PDF-1.4"
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == "inline"


def test_other_users_directory_is_forbidden(login, make_user, employee, stored_file):
    other = make_user("Olly", "olly@example.com", roles=["EMPLOYEE"])
    response = login(other).get(f"/api/uploads/{employee.email}/{stored_file.name}")
    assert response.status_code == 403


def test_missing_file(login, employee, upload_dir):
    assert login(employee).get(f"/api/uploads/{employee.email}/nope.png").status_code == 404


def test_requires_session(client, employee, stored_file):
    assert client.get(f"/api/uploads/{employee.email}/{stored_file.name}").status_code == 401


@pytest.mark.parametrize("name, expected", [
    ("receipt.png", "receipt.png"),
    ("../../etc/passwd", "passwd"),
    ("my receipt (1).jpg", "my_receipt__1_.jpg"),
    ("", "upload"),
])
def test_safe_filename(name, expected):
    assert storage.safe_filename(name) == expected


def test_resolve_stored_path_blocks_traversal(upload_dir):
    from fastapi import HTTPException

    with pytest.raises(HTTPException):
        storage.resolve_stored_path("../outside.txt")
    assert storage.resolve_stored_path("a@example.com/x.png") == upload_dir.resolve() / "a@example.com" / "x.png"


def test_belongs_to():
    assert storage.belongs_to("/uploads/a@example.com/1-x.png", "a@example.com")
    assert storage.belongs_to("a@example.com/1-x.png", "a@example.com")
    assert not storage.belongs_to("b@example.com/1-x.png", "a@example.com")
    assert not storage.belongs_to("a@example.com/../b@example.com/x.png", "a@example.com")
    assert not storage.belongs_to("a@example.com", "a@example.com")


def test_external_urls_never_belong_to_anyone():
    assert storage.is_external("https://../a@example.com/1-x.png")
    assert not storage.belongs_to("https://../a@example.com/1-x.png", "a@example.com")
    assert not storage.belongs_to("https://a@example.com/1-x.png", "https:")
