"""
Business logic utilities for common operations across Lambda functions
Maps exceptions raised by handlers and the PDF engine to JSON error responses
"""

import functools
import logging

import response_utils as resp
from exceptions import DocumentGenerationError, TemplateLoadError

logger = logging.getLogger(__name__)


def handle_business_logic_error(func):
    """Decorator mapping document generation failures and unexpected errors to JSON responses"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TemplateLoadError as e:
            # Missing letterhead means a packaging defect, not a bad request
            logger.error(f"Letterhead template failure in {func.__name__}: {e.message} (path: {e.path})",
                         exc_info=True)
            return resp.error_response(f"Document generation failed: {e.message}", e.status_code)
        except DocumentGenerationError as e:
            logger.error(f"{type(e).__name__} in {func.__name__}: {e.message} (status: {e.status_code})")
            return resp.error_response(f"Document generation failed: {e.message}", e.status_code)
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {str(e)}", exc_info=True)
            return resp.error_response(f"Internal server error: {str(e)}", 500)
    return wrapper
