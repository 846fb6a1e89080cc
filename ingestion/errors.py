"""Exceptions raised while turning documents into linear text."""


class PDFExtractionError(Exception):
    """Raised when document extraction fails."""
    pass


class BackendNotLoadedError(PDFExtractionError):
    """Raised when the PDF library is not available."""
    pass


class DocumentParseError(PDFExtractionError):
    """Raised when a document is corrupted, encrypted or otherwise unreadable."""
    pass


class EmptyDocumentError(PDFExtractionError):
    """Raised when a document yields (almost) no text."""
    pass
