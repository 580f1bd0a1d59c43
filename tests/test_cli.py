"""
tests/test_cli.py -- The admin CLI in main.py.

Covers:
  - gen-secret prints a value long enough for JWT_SECRET
  - hash-password prints a hash that verifies, and refuses short passwords
  - create-university / create-company write to the given database and print
    a generated password once when none is supplied
"""

from __future__ import annotations

import pytest

from auth.models import Role
from auth.passwords import verify_password
from main import main
from users.store import UserRepository


def test_gen_secret(capsys: pytest.CaptureFixture) -> None:
    assert main(["gen-secret"]) == 0
    secret = capsys.readouterr().out.strip()
    assert len(secret) >= 32


def test_hash_password(capsys: pytest.CaptureFixture) -> None:
    assert main(["hash-password", "--password", "admin-pass-123"]) == 0
    hashed = capsys.readouterr().out.strip()
    assert verify_password("admin-pass-123", hashed)


def test_hash_password_too_short(capsys: pytest.CaptureFixture) -> None:
    assert main(["hash-password", "--password", "short"]) == 1
    assert "at least" in capsys.readouterr().err


def test_hash_password_prompt_mismatch(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    answers = iter(["first-password", "second-password"])
    monkeypatch.setattr("main.getpass.getpass", lambda prompt="": next(answers))
    assert main(["hash-password"]) == 1
    assert "do not match" in capsys.readouterr().err


def test_create_university_with_generated_password(tmp_path, capsys: pytest.CaptureFixture) -> None:
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    rc = main(
        [
            "create-university",
            "--name", "Université de Lille",
            "--login", "ulille",
            "--mail", "contact@univ-lille.fr",
            "--db-url", db_url,
        ]
    )
    assert rc == 0
    out = capsys.readouterr().out
    assert "Created university ulille" in out
    password = out.split("Generated password: ", 1)[1].strip()

    repo = UserRepository(db_url)
    try:
        creds = repo.get_credentials(Role.UNIVERSITY, "ulille")
    finally:
        repo.close()
    assert creds is not None
    assert verify_password(password, creds.hashed_password)


def test_create_company_duplicate_login(tmp_path, capsys: pytest.CaptureFixture) -> None:
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    args = ["create-company", "--name", "Acme", "--login", "acme", "--mail", "hr@acme.com", "--db-url", db_url]
    assert main(args + ["--password", "company-pass-1"]) == 0
    assert "Generated password" not in capsys.readouterr().out
    assert main(args) == 1
    assert "already taken" in capsys.readouterr().err
