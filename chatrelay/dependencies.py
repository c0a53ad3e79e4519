from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from chatrelay.config import Settings, get_settings
from chatrelay.db.database import get_db
from chatrelay.services.completion_gateway import CompletionGateway
from chatrelay.services.file_store import FileStore
from chatrelay.services.relay_service import RelayService


@lru_cache
def _gateway() -> CompletionGateway:
    return CompletionGateway.from_settings(get_settings())


def get_completion_gateway() -> CompletionGateway:
    return _gateway()


def get_file_store(settings: Settings = Depends(get_settings)) -> FileStore:
    return FileStore(settings.UPLOAD_DIRECTORY)


def get_relay_service(
    db: Session = Depends(get_db),
    gateway: CompletionGateway = Depends(get_completion_gateway),
    file_store: FileStore = Depends(get_file_store),
    settings: Settings = Depends(get_settings),
) -> RelayService:
    return RelayService(db, gateway, file_store, settings)
