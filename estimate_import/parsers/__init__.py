"""Document parsers for BMS and EMS estimate files."""

from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from ..models.parsed import ParsedDocument
from ..utils.exceptions import UnsupportedFileTypeError
from .bms_parser import BMSParser, bms_parser
from .ems_parser import EMSParser, ems_parser

EXTENSION_TYPES = {
    "xml": "BMS",
    "bms": "BMS",
    "ems": "EMS",
    "txt": "EMS",
}


class DocumentParser(Protocol):
    """Anything that turns raw estimate content into a ParsedDocument."""

    file_type: str

    def parse(self, content: Union[str, bytes]) -> ParsedDocument:
        ...


PARSERS: Dict[str, DocumentParser] = {
    "BMS": bms_parser,
    "EMS": ems_parser,
}


def normalize_file_type(file_type: str) -> str:
    normalized = (file_type or "").strip().upper()
    if normalized not in PARSERS:
        raise UnsupportedFileTypeError(f"Unsupported file type: {file_type}")
    return normalized


def get_parser(file_type: str) -> DocumentParser:
    return PARSERS[normalize_file_type(file_type)]


def detect_file_type(content: Union[str, bytes], file_name: Optional[str] = None) -> str:
    """
    Pick a format for content without an explicit file type.

    A known file extension decides first (.xml/.bms are BMS, .ems/.txt are EMS).
    An unknown extension raises UnsupportedFileTypeError. Without a file name
    the content is sniffed: a leading ``<`` means BMS, anything else EMS.
    """
    if file_name:
        extension = Path(file_name).suffix.lower().lstrip(".")
        if extension:
            if extension not in EXTENSION_TYPES:
                raise UnsupportedFileTypeError(f"Unsupported file extension: .{extension}")
            return EXTENSION_TYPES[extension]

    if isinstance(content, bytes):
        content = content.decode("utf-8-sig", errors="replace")
    head = (content or "").lstrip("\ufeff").lstrip()
    return "BMS" if head.startswith("<") else "EMS"


__all__ = [
    "BMSParser",
    "DocumentParser",
    "EMSParser",
    "EXTENSION_TYPES",
    "PARSERS",
    "bms_parser",
    "ems_parser",
    "detect_file_type",
    "get_parser",
    "normalize_file_type",
]
