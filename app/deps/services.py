from typing import Optional

from app.services.esign_client import ESignClient, esign_client_from_env
from app.services.file_store import FileStore, file_store_from_env
from app.services.renderer import DocumentRenderer, renderer_from_env


def get_file_store() -> FileStore:
    return file_store_from_env()


def get_renderer() -> Optional[DocumentRenderer]:
    return renderer_from_env()


def get_esign_client() -> Optional[ESignClient]:
    return esign_client_from_env()
