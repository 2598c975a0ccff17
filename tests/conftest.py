import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schoolmail.auth.passwords import hash_password
from schoolmail.core.config import Settings
from schoolmail.database import Base
from schoolmail.mail.transport import TransportError
from schoolmail.models.email_log import EmailLog
from schoolmail.models.school_class import SchoolClass
from schoolmail.models.user import User


class FakeMailer:
    def __init__(self, error: str | None = None):
        self.error = error
        self.sent = []

    def send(self, to, subject, html, attachments=None):
        if self.error:
            raise TransportError(self.error)
        self.sent.append(
            {'to': list(to), 'subject': subject, 'html': html, 'attachments': list(attachments or [])}
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url='sqlite:///:memory:',
        jwt_secret_key='test-secret',
        smtp_host='localhost',
        mail_from='office@school.test',
        log_level='DEBUG',
    )


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def failing_mailer() -> FakeMailer:
    return FakeMailer(error='550 mailbox unavailable')


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, SchoolClass.__table__, EmailLog.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str = 'admin', class_id: int | None = None, password: str = 'secret') -> User:
        user = User(
            name=email.split('@')[0].title(),
            email=email,
            hashed_password=hash_password(password),
            role=role,
            class_id=class_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user
