"""DRF exception handler that keeps every error response in JSON."""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Delegate to DRF's handler, then turn anything it does not know about
    into a JSON 500 instead of an HTML traceback.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception(
        "Unhandled error in %s", view.__class__.__name__ if view else "unknown view",
        exc_info=exc,
    )
    return Response(
        {"error": "Internal server error", "message": "Something went wrong. Please try again later."},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
