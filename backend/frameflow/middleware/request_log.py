import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from frameflow.core.logger import get_logger, get_request_ip, log_event, reset_request_ip, set_request_ip

_http_logger = get_logger("http")


def client_ip(request: Request) -> str:
    # X-Forwarded-For wins when running behind a reverse proxy
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return request.client.host if request.client else "-"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        token = set_request_ip(client_ip(request))
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            _http_logger.exception(f"{get_request_ip()} - ERROR {request.method} {request.url.path}: {e}")
            raise
        else:
            dur = int((time.time() - start) * 1000)
            log_event(_http_logger, f"{request.method} {request.url.path} {response.status_code} {dur}ms")
            return response
        finally:
            reset_request_ip(token)
