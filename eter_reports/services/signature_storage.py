"""
Stockage des signatures / Signature file storage.
Enregistre les data-URI décodées sur disque et les relit pour les PDF.
Saves decoded data-URIs to disk and reads them back for PDF embedding.
"""

import logging
import time
from pathlib import Path

from eter_reports.config import settings
from eter_reports.utils.images import decode_data_uri

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


class SignatureStorage:
    """Répertoire d'upload des signatures / Signature upload directory."""

    def __init__(self, upload_dir: str | Path):
        self.upload_dir = Path(upload_dir)

    def save(self, data_uri: str, identifier: str) -> str:
        """Écrire l'image et retourner son chemin public / Write the image, return its public path."""
        ext, raw = decode_data_uri(data_uri)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        filename = f"signature_{identifier}_{int(time.time() * 1000)}.{ext}"
        (self.upload_dir / filename).write_bytes(raw)
        return f"{URL_PREFIX}{filename}"

    def resolve(self, url: str | None) -> Path | None:
        """Chemin disque d'une URL /uploads/... / Disk path for an /uploads/... URL."""
        if not url:
            return None
        name = url[len(URL_PREFIX):] if url.startswith(URL_PREFIX) else url
        # Pas de sous-dossier ni de remontée / No subfolders, no traversal
        if not name or Path(name).name != name:
            return None
        return self.upload_dir / name

    def exists(self, url: str | None) -> bool:
        path = self.resolve(url)
        return path is not None and path.is_file()

    def read_bytes(self, url: str) -> bytes:
        path = self.resolve(url)
        if path is None:
            raise FileNotFoundError(url)
        return path.read_bytes()

    def delete(self, url: str | None) -> None:
        path = self.resolve(url)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete signature file %s: %s", path, exc)


def get_storage() -> SignatureStorage:
    """Dépendance FastAPI / FastAPI dependency."""
    return SignatureStorage(settings.UPLOAD_DIR)
