import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolmail.auth.dependencies import get_current_claims
from schoolmail.auth.jwt_handler import TokenClaims
from schoolmail.database import get_db
from schoolmail.mail.recipients import (
    RECIPIENT_GROUPS,
    InvalidSelectorError,
    parse_preview_selector,
    parse_selector,
    resolve_recipients,
)
from schoolmail.mail.transport import Attachment, SmtpMailer, TransportError, get_mailer
from schoolmail.models.email_log import EmailLog
from schoolmail.models.school_class import SchoolClass
from schoolmail.routes.class_routes import ClassResponse

router = APIRouter(tags=['email'], dependencies=[Depends(get_current_claims)])

logger = logging.getLogger(__name__)

NO_RECIPIENTS = 'No recipients found for this group.'
DEFAULT_PAGE_SIZE = 10


class SenderResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str

    class Config:
        from_attributes = True


class EmailLogResponse(BaseModel):
    id: int
    subject: str
    message: str
    recipients: str
    class_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices('class_name', 'class'),
        serialization_alias='class',
    )
    sent_by: int = Field(validation_alias=AliasChoices('sent_by', 'sentBy'), serialization_alias='sentBy')
    attachments: list[dict] | None = None
    sent_at: datetime = Field(validation_alias=AliasChoices('sent_at', 'sentAt'), serialization_alias='sentAt')
    sender: SenderResponse | None = Field(
        default=None,
        validation_alias=AliasChoices('sender', 'User'),
        serialization_alias='User',
    )

    class Config:
        from_attributes = True


class EmailLogPageResponse(BaseModel):
    count: int
    logs: list[EmailLogResponse]


class RecipientPreviewResponse(BaseModel):
    groups: list[str]
    classes: list[ClassResponse]
    emails: list[str]


def read_attachments(uploads: list[UploadFile] | None) -> list[Attachment]:
    attachments = []
    for upload in uploads or []:
        if not upload.filename:
            continue
        attachments.append(
            Attachment(
                filename=upload.filename,
                content_type=upload.content_type or 'application/octet-stream',
                content=upload.file.read(),
            )
        )
    return attachments


def record_email_log(
    db: Session,
    *,
    subject: str,
    message: str,
    recipients: str,
    class_name: str | None,
    sent_by: int,
    attachments: list[Attachment],
) -> EmailLog:
    email_log = EmailLog(
        subject=subject,
        message=message,
        recipients=recipients,
        class_name=class_name or None,
        sent_by=sent_by,
        attachments=[attachment.metadata() for attachment in attachments],
        sent_at=datetime.now(timezone.utc),
    )
    db.add(email_log)
    db.commit()
    db.refresh(email_log)
    return email_log


@router.post('/send')
def send_email(
    subject: str | None = Form(None),
    message: str | None = Form(None),
    recipients: str | None = Form(None),
    class_name: str | None = Form(None, alias='class'),
    attachments: list[UploadFile] | None = File(None),
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
    mailer: SmtpMailer = Depends(get_mailer),
):
    if not subject or not message or not recipients:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing fields')

    try:
        selector = parse_selector(recipients, class_name)
    except InvalidSelectorError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        to_emails = resolve_recipients(db, selector)
    except SQLAlchemyError as exc:
        logger.exception('Recipient lookup failed for selector %r', recipients)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={'error': 'Failed to send email', 'details': str(exc)},
        ) from exc

    if not to_emails:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_RECIPIENTS)

    files = read_attachments(attachments)

    try:
        mailer.send(to_emails, subject, message, files)
    except TransportError as exc:
        logger.exception('Email send error for selector %r', recipients)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={'error': 'Failed to send email', 'details': str(exc)},
        ) from exc

    logger.info('User %s sent "%s" to %s (%d recipients)', claims.id, subject, recipients, len(to_emails))

    try:
        record_email_log(
            db,
            subject=subject,
            message=message,
            recipients=recipients,
            class_name=class_name,
            sent_by=claims.id,
            attachments=files,
        )
    except SQLAlchemyError:
        # The message is already out; the caller still sees success.
        db.rollback()
        logger.exception('Email was delivered but its audit log entry could not be written')

    return {'success': True}


@router.get('/logs', response_model=EmailLogPageResponse)
def list_email_logs(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, alias='pageSize'),
    search: str = Query(default=''),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(EmailLog)
        if search:
            query = query.filter(
                or_(
                    EmailLog.subject.icontains(search, autoescape=True),
                    EmailLog.recipients.icontains(search, autoescape=True),
                )
            )

        count = query.count()
        rows = (
            query.order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
    except (SQLAlchemyError, OverflowError) as exc:
        # OverflowError: an offset too large for the database integer type.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to fetch logs',
        ) from exc

    return EmailLogPageResponse(
        count=count,
        logs=[EmailLogResponse.model_validate(row) for row in rows],
    )


@router.get('/recipients', response_model=RecipientPreviewResponse)
def preview_recipients(
    group: str | None = Query(default=None),
    class_id: str | None = Query(default=None, alias='classId'),
    db: Session = Depends(get_db),
):
    try:
        selector = parse_preview_selector(group, class_id)
    except InvalidSelectorError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        classes = db.query(SchoolClass).order_by(SchoolClass.id).all()
        emails = resolve_recipients(db, selector)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to fetch recipient groups',
        ) from exc

    return RecipientPreviewResponse(
        groups=list(RECIPIENT_GROUPS),
        classes=[ClassResponse.model_validate(school_class) for school_class in classes],
        emails=emails,
    )
