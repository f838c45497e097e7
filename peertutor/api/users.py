from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db
from peertutor.schemas.user import ProfileUpdate, TutorApplicationRequest, UserResponse
from peertutor.services import auth_service, income_service, storage_service, tutor_service
from peertutor.utils.security import get_current_tutor, get_current_user

router = APIRouter(prefix="/users", tags=["Users"])


# ======================
# GET/UPDATE: Own profile
# ======================
@router.get("/me", response_model=UserResponse)
def get_my_profile(current_user: models.User = Depends(get_current_user)):
    return auth_service.serialize_user(current_user)


@router.patch("/me", response_model=UserResponse)
def update_my_profile(
    payload: ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    return unwrap(tutor_service.update_user_profile(db, current_user.id, changes))["user"]


# ======================
# UPLOADS
# ======================
@router.post("/me/photo")
async def upload_profile_picture(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    data = await file.read()
    result = unwrap(storage_service.update_profile_picture(db, current_user.id, data, file.content_type))
    return {"photo_url": result["url"]}


@router.post("/me/exam-results")
async def upload_exam_results(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    data = await file.read()
    result = unwrap(storage_service.upload_exam_results(db, current_user.id, data, file.content_type))
    return {"exam_results_url": result["url"]}


# ======================
# TUTOR APPLICATION
# ======================
@router.post("/me/tutor-application")
def apply_for_tutor(
    payload: TutorApplicationRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.apply_for_tutor(db, current_user.id, payload.model_dump()))["application"]


# ======================
# INCOME (tutor)
# ======================
@router.get("/me/income")
def get_my_income(
    tutor: models.User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
):
    result = unwrap(income_service.get_tutor_income(db, tutor.id))
    result.pop("success", None)
    return result


# ======================
# GET: Public profile
# ======================
@router.get("/{user_id}", response_model=UserResponse)
def get_user_profile(
    user_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(tutor_service.get_user_profile(db, user_id))["user"]
