"""Constants for spreadsheet ingestion."""

# Supported upload extensions
ALLOWED_EXTENSIONS = {"xlsx", "csv"}

# ZIP local file header; every xlsx workbook is a ZIP container
XLSX_MAGIC = b"PK\x03\x04"

# Column headers that carry the generated document's name
DOCUMENT_NAME_HEADERS = ("DOCUMENT_NAME", "Document Name")

# Header written into generated input workbooks
DOCUMENT_NAME_HEADER = "DOCUMENT_NAME"

# Date formats accepted for "date" fields, tried in order
DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%d-%m-%Y",
)

# Separator between row-level validation problems
PROBLEM_SEPARATOR = "; "

# Chunk size used when sniffing CSV encodings
DECODE_CHUNK_SIZE = 64 * 1024
