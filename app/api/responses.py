# app/api/responses.py - Map service result envelopes to HTTP responses
from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.exceptions import ERROR_CODE_STATUS
from app.schemas.common import OperationResult


def result_response(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Successful results use success_status; failures use the status of their error code"""
    if result.success:
        code = success_status
    else:
        code = ERROR_CODE_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=jsonable_encoder(result))
