from __future__ import annotations

STANDARD_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".webp", ".tif", ".tiff"}
DOCUMENT_EXTENSIONS = {".pdf"}
SUPPORTED_DESIGN_EXTENSIONS = STANDARD_EXTENSIONS | DOCUMENT_EXTENSIONS
RECORD_EXTENSIONS = {".csv", ".json", ".yaml", ".yml"}

MEDIA_TYPE_IMAGE = "image"
MEDIA_TYPE_DOCUMENT = "document"

# Photo slot, preview pixels
PHOTO_DEFAULT_RECT = (8, 8, 64, 64)
PHOTO_MIN_SIZE = 32
PHOTO_MAX_SIZE = 200

# Field overlays, preview pixels
FIELD_DEFAULT_X = 8
FIELD_FIRST_Y = 80
FIELD_ROW_STEP = 40
FIELD_BAND_HEIGHT = 32
FIELD_PADDING_X = 8
FIELD_MIN_BOX_WIDTH = 40
FONT_SIZE_MIN = 10
FONT_SIZE_MAX = 48
DEFAULT_FONT_SIZE = 16
DEFAULT_FONT_COLOR = "#222"

FONT_FAMILIES = (
    "DM Sans",
    "Barlow",
    "Arial",
    "Times New Roman",
    "Courier New",
    "Georgia",
    "Verdana",
    "Tahoma",
)
DEFAULT_FONT_FAMILY = FONT_FAMILIES[0]

ARCHIVE_ENTRY_SUFFIX = "_idcard"
ARCHIVE_IMAGE_FORMAT = "png"
DEFAULT_ARCHIVE_NAME = "idcards.zip"
DEFAULT_DOCUMENT_NAME = "idcards.pdf"

RECORD_ERROR_ABORT = "abort"
RECORD_ERROR_SKIP = "skip"
VALID_RECORD_ERROR_POLICIES = {RECORD_ERROR_ABORT, RECORD_ERROR_SKIP}

VALID_PAGE_SIZES = {"A4", "LETTER"}
VALID_PAGE_ORIENTATIONS = {"portrait", "landscape"}
