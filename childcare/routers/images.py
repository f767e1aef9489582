# childcare/routers/images.py
from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlmodel import Session

from childcare.core.auth import require_admin, require_auth
from childcare.core.firebase import Identity
from childcare.database import get_session
from childcare.schemas.image import ImageListRead, ImageStatisticsRead, ImageUploadResponse
from childcare.services.image_service import ImageService

router = APIRouter(prefix="/images", tags=["Images"])


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


@router.post(
    "",
    response_model=ImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_image(
    image: UploadFile = File(...),
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: ImageService = Depends(get_image_service),
):
    """
    Upload one of the caller's images (multipart field `image`).

    400 when the file is not an image, is over the size limit (the body
    then carries the size `violation`), or the caller already owns the
    maximum number of images.
    """
    data = service.read_upload(image.file, image.size)
    stored, images = service.upload(
        session,
        caller.uid,
        image.filename,
        image.content_type,
        data,
    )
    return ImageUploadResponse(
        message="Image uploaded successfully",
        image=stored,
        images=images,
    )


@router.get(
    "",
    response_model=ImageListRead,
    dependencies=[Depends(require_admin)],
)
def list_images(service: ImageService = Depends(get_image_service)):
    """Every blob path in the bucket (admin only)."""
    return ImageListRead(images=service.list_all())


@router.get(
    "/statistics",
    response_model=ImageStatisticsRead,
    dependencies=[Depends(require_admin)],
)
def image_statistics(service: ImageService = Depends(get_image_service)):
    """Upload counters since process start, plus the size limit."""
    stats = service.statistics
    return ImageStatisticsRead(
        statistics=stats.get_statistics(),
        size_limit=stats.size_limit,
    )


@router.get("/{file_name}")
def download_image(
    file_name: str,
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: ImageService = Depends(get_image_service),
):
    """Raw bytes of one of the caller's images."""
    data, content_type = service.download(session, caller.uid, file_name)
    return Response(content=data, media_type=content_type)


@router.delete("/{file_name}", response_model=ImageListRead)
def delete_image(
    file_name: str,
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: ImageService = Depends(get_image_service),
):
    """Delete one of the caller's images; returns the remaining names."""
    return ImageListRead(images=service.delete(session, caller.uid, file_name))
