from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from schoolmail.auth.dependencies import get_current_claims
from schoolmail.database import get_db
from schoolmail.models.school_class import SchoolClass

router = APIRouter(tags=['classes'], dependencies=[Depends(get_current_claims)])

DUPLICATE_CLASS = 'Class already exists'
CLASS_NOT_FOUND = 'Class not found'


class ClassRequest(BaseModel):
    name: str | None = None


class ClassResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


def get_class_or_404(class_id: int, db: Session) -> SchoolClass:
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CLASS_NOT_FOUND)
    return school_class


@router.get('/', response_model=list[ClassResponse])
def list_classes(db: Session = Depends(get_db)):
    try:
        return db.query(SchoolClass).order_by(SchoolClass.id).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to fetch classes',
        ) from exc


@router.post('/', response_model=ClassResponse)
def create_class(data: ClassRequest, db: Session = Depends(get_db)):
    if not data.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing class name')

    try:
        if db.query(SchoolClass).filter(SchoolClass.name == data.name).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_CLASS)

        school_class = SchoolClass(name=data.name)
        db.add(school_class)
        db.commit()
        db.refresh(school_class)
        return school_class
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_CLASS) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to create class',
        ) from exc


@router.put('/{class_id}', response_model=ClassResponse)
def update_class(class_id: int, data: ClassRequest, db: Session = Depends(get_db)):
    try:
        school_class = get_class_or_404(class_id, db)
        # Renames are not checked against existing names up front; only the
        # unique constraint on classes.name catches a collision.
        if data.name:
            school_class.name = data.name
        db.commit()
        db.refresh(school_class)
        return school_class
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_CLASS) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to update class',
        ) from exc


@router.delete('/{class_id}')
def delete_class(class_id: int, db: Session = Depends(get_db)):
    try:
        school_class = get_class_or_404(class_id, db)
        # Members keep their class_id; nothing is reassigned.
        db.delete(school_class)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Failed to delete class',
        ) from exc

    return {'success': True}
