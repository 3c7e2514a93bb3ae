from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from app.utils.exceptions import AppException

NO_STORE_HEADERS = {"Cache-Control": "no-store"}


def api_success(**fields: Any) -> Dict[str, Any]:
	return {"success": True, **fields}


def api_error(message: str, code: Optional[str] = None, details: Optional[Any] = None, **extra: Any) -> Dict[str, Any]:
	error: Dict[str, Any] = {"message": message}
	if code is not None:
		error["code"] = code
	if details is not None:
		error["details"] = details
	return {"error": error, **extra}


def json_response(body: Any, status_code: int = 200) -> JSONResponse:
	return JSONResponse(status_code=status_code, content=body, headers=dict(NO_STORE_HEADERS))


def error_response(exc: AppException, **extra: Any) -> JSONResponse:
	return json_response(api_error(exc.message, code=exc.code, **extra), status_code=exc.status_code)
