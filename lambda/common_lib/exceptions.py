"""
Common exceptions used across the application
"""


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message, field=None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class DocumentGenerationError(Exception):
    """Base class for failures inside the PDF layout engine.

    None of these are recoverable mid-render: the whole document is abandoned
    and no partial PDF is returned.
    """
    status_code = 500

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class TemplateLoadError(DocumentGenerationError):
    """Letterhead template missing, unreadable or not a PDF"""
    def __init__(self, message, path=None):
        self.path = path
        super().__init__(message)


class RenderError(DocumentGenerationError):
    """Malformed record reached a section renderer"""
    def __init__(self, message, section=None):
        self.section = section
        super().__init__(message)


class ConversionError(DocumentGenerationError):
    """Exchange rate lookup failed or returned no rate"""
    status_code = 502

    def __init__(self, message, currency=None):
        self.currency = currency
        super().__init__(message)
