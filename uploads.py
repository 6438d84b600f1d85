# uploads.py (uploaded files on disk)
import logging
import os

from werkzeug.security import safe_join

from database import iso_timestamp, now_millis

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

ALLOWED_TYPES = {
    "application/pdf",                                                            # PDF
    "application/msword",                                                         # DOC
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",    # DOCX
    "application/vnd.ms-powerpoint",                                              # PPT
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",  # PPTX
    "image/jpeg",                                                                 # JPG
    "image/png",                                                                  # PNG
}

TYPE_ERROR = "Only PDF, DOC, DOCX, PPT, PPTX, JPG, and PNG files are allowed!"
SIZE_ERROR = "File too large. Maximum size is 10 MB"


class UploadRejected(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def init_upload_folder(folder):
    os.makedirs(folder, exist_ok=True)


def _stream_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def clean_name(filename):
    """Last path component of a client file name, without control characters.

    Spaces and non-ASCII text are kept so the listing gives the name back as sent.
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = "".join(ch for ch in name if ch.isprintable())
    if name.strip() in ("", ".", ".."):
        return "upload"
    return name


def _create_unique(folder, name):
    """Open <millis>-<name> for exclusive writing, bumping millis until the name is free."""
    millis = now_millis()
    while True:
        stored = f"{millis}-{name}"
        path = os.path.join(folder, stored)
        try:
            return millis, stored, path, open(path, "xb")
        except FileExistsError:
            millis += 1


def save_upload(folder, file, max_size=MAX_FILE_SIZE):
    """Validate a werkzeug FileStorage and write it under a fresh stored name."""
    if file is None or not file.filename:
        raise UploadRejected("No file uploaded")
    if file.mimetype not in ALLOWED_TYPES:
        logger.warning("Rejected %r: type %s not allowed", file.filename, file.mimetype)
        raise UploadRejected(TYPE_ERROR)
    size = _stream_size(file)
    if size > max_size:
        logger.warning("Rejected %r: %d bytes over the limit", file.filename, size)
        raise UploadRejected(SIZE_ERROR, 413)

    safe_name = clean_name(file.filename)
    millis, stored, path, out = _create_unique(folder, safe_name)
    try:
        with out:
            file.save(out)
    except OSError:
        os.remove(path)
        raise
    logger.info("Stored %s (%d bytes)", stored, size)

    return {
        "id": millis,
        "originalName": file.filename,
        "filename": stored,
        "path": path,
        "status": "Uploaded",
        "uploadDate": iso_timestamp(millis),
    }


def original_name(stored):
    # strip the "<millis>-" prefix
    return stored.partition("-")[2]


def _created_at(stat):
    created = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return iso_timestamp(int(created * 1000))


def list_uploads(folder):
    """Every entry of the uploads folder, oldest stored name first. Raises OSError."""
    files = []
    with os.scandir(folder) as entries:
        for entry in entries:
            files.append({
                "filename": entry.name,
                "originalName": original_name(entry.name),
                "status": "Uploaded",
                "uploadDate": _created_at(entry.stat()),
            })
    files.sort(key=lambda f: f["filename"])
    return files


def resolve_download(folder, filename):
    """Absolute path of an existing upload, or None (also for names escaping the folder)."""
    path = safe_join(folder, filename)
    if path is None or not os.path.isfile(path):
        return None
    return path
