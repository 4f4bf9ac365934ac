"""Deterministic zip packaging of a function bundle directory."""
import io
import logging
import zipfile
from pathlib import Path

from alb_deploy.errors import PackagingError

logger = logging.getLogger(__name__)

# Fixed entry metadata so identical trees produce identical bytes
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644 << 16


def pack(directory: str) -> bytes:
    """Zip every file under ``directory`` with paths relative to it."""
    root = Path(directory)
    if not root.is_dir():
        raise PackagingError(f"Bundle directory does not exist: {directory}")

    files = sorted(path for path in root.rglob('*') if path.is_file())
    if not files:
        raise PackagingError(f"Bundle directory is empty: {directory}")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zipf:
        for file_path in files:
            info = zipfile.ZipInfo(file_path.relative_to(root).as_posix(), date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = FILE_MODE
            zipf.writestr(info, file_path.read_bytes())

    content = buffer.getvalue()
    logger.info(f"Packaged {directory} ({len(content)} bytes, {len(files)} files)")
    return content
