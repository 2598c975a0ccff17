import pytest

from schoolmail import create_admin
from schoolmail.auth.passwords import verify_password
from schoolmail.database import build_engine, build_session_factory
from schoolmail.models.user import User


def test_create_admin_inserts_user(tmp_path, capsys) -> None:
    database_url = f"sqlite:///{tmp_path / 'admin.db'}"

    create_admin.main(
        ['--name', 'Office', '--email', 'office@school.test', '--password', 'pw'],
        database_url=database_url,
    )

    db = build_session_factory(build_engine(database_url))()
    try:
        user = db.query(User).filter(User.email == 'office@school.test').one()
        assert user.role == 'admin'
        assert verify_password('pw', user.hashed_password)
    finally:
        db.close()
    assert 'Created admin office@school.test' in capsys.readouterr().out


def test_create_admin_refuses_duplicate_email(tmp_path, capsys) -> None:
    database_url = f"sqlite:///{tmp_path / 'admin.db'}"
    argv = ['--name', 'Office', '--email', 'office@school.test', '--password', 'pw', '--role', 'parent']
    create_admin.main(argv, database_url=database_url)

    with pytest.raises(SystemExit) as exit_info:
        create_admin.main(argv, database_url=database_url)

    assert exit_info.value.code == 1
    assert 'Email already registered' in capsys.readouterr().err
