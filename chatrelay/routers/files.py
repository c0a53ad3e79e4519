from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from typing import Optional

from chatrelay.config import Settings, get_settings
from chatrelay.dependencies import get_relay_service
from chatrelay.errors import ClientInputError
from chatrelay.models.schemas import DocumentUploadResponse, ImageUploadResponse
from chatrelay.services.relay_service import RelayService

router = APIRouter(tags=["Files"])


async def read_upload(file: Optional[UploadFile], settings: Settings) -> Optional[bytes]:
    """Read an upload, refusing oversize files before loading them"""
    if file is None:
        return None
    if file.size is not None and file.size > settings.MAX_UPLOAD_BYTES:
        raise ClientInputError(f"File {file.filename} is larger than {settings.MAX_UPLOAD_BYTES} bytes")
    return await file.read()


@router.post("/upload", response_model=ImageUploadResponse)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Form(None, alias="userId"),
    chat_id: Optional[str] = Form(None, alias="chatId"),
    message: Optional[str] = Form(None),
    service: RelayService = Depends(get_relay_service),
    settings: Settings = Depends(get_settings)
):
    """Upload an image and get a reply about it"""
    content = await read_upload(file, settings)
    return await run_in_threadpool(
        service.upload_image,
        user_id,
        file.filename if file else None,
        content,
        file.content_type if file else None,
        chat_id,
        message,
    )


@router.post("/upload-document", response_model=DocumentUploadResponse)
async def upload_document(
    file: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Form(None, alias="userId"),
    chat_id: Optional[str] = Form(None, alias="chatId"),
    message: Optional[str] = Form(None),
    service: RelayService = Depends(get_relay_service),
    settings: Settings = Depends(get_settings)
):
    """Upload a PDF, DOCX or TXT document and ask a question about it"""
    content = await read_upload(file, settings)
    return await run_in_threadpool(
        service.upload_document,
        user_id,
        file.filename if file else None,
        content,
        file.content_type if file else None,
        chat_id,
        message,
    )


@router.get("/files/{file_id}")
async def get_file(file_id: str, service: RelayService = Depends(get_relay_service)):
    attachment = await run_in_threadpool(service.get_attachment, file_id)
    return FileResponse(attachment.path, media_type=attachment.content_type, filename=attachment.filename)
