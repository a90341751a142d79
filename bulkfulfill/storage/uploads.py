from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from bulkfulfill.common.logging_setup import get_logger
from bulkfulfill.common.settings import settings

logger = get_logger(__name__)


def _base_dir(base: str | Path | None = None) -> Path:
    p = Path(base or settings.UPLOAD_DIR)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextlib.contextmanager
def staged_upload(data: bytes, filename: str, *, base: str | Path | None = None) -> Iterator[Path]:
    """
    Grava o upload num arquivo temporário e garante a remoção ao sair,
    com sucesso ou erro. Só a extensão do nome original é aproveitada.
    """
    suffix = Path(filename or "").suffix.lower()
    fd, tmp_path = tempfile.mkstemp(prefix="upload.", suffix=suffix, dir=_base_dir(base))
    path = Path(tmp_path)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("upload_cleanup_falhou", extra={"path": str(path)}, exc_info=True)
