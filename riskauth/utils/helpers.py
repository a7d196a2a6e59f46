# ==========================================
# riskauth/utils/helpers.py
"""
General helper utilities
"""
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from flask import request
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT', bound=BaseModel)


class RequestValidationError(ValueError):
    """Request body failed schema validation"""

    def __init__(self, errors):
        super().__init__('Invalid request body')
        self.errors = errors


def get_client_ip(request_obj) -> str:
    """Get client IP address from request"""
    try:
        # Check for X-Forwarded-For header (proxy/load balancer)
        if request_obj.headers.get('X-Forwarded-For'):
            return request_obj.headers.get('X-Forwarded-For').split(',')[0].strip()

        # Check for X-Real-IP header
        if request_obj.headers.get('X-Real-IP'):
            return request_obj.headers.get('X-Real-IP')

        # Fall back to remote address
        return request_obj.remote_addr or 'unknown'
    except Exception as e:
        logger.error(f"Error getting client IP: {e}")
        return 'unknown'


def get_user_agent(request_obj) -> str:
    """Get user agent string from request"""
    try:
        return request_obj.headers.get('User-Agent', 'unknown')
    except Exception as e:
        logger.error(f"Error getting user agent: {e}")
        return 'unknown'


def parse_body(model: Type[ModelT]) -> ModelT:
    """Validate the JSON body of the current request against ``model``"""
    data = request.get_json(silent=True)
    if data is None:
        raise RequestValidationError([{'msg': 'JSON body required'}])
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False, include_input=False)) from e


def query_flag(name: str) -> bool:
    return request.args.get(name, '').lower() == 'true'


def query_limit(default: int = 100, maximum: int = 1000) -> int:
    limit = request.args.get('limit', default, type=int)
    return max(1, min(limit, maximum))


def error_details(error: RequestValidationError) -> Dict[str, Any]:
    return {'error': 'Invalid request body', 'details': error.errors}


def audit_context(actor_id: Optional[str] = None) -> Dict[str, Optional[str]]:
    """Request metadata recorded alongside admin changes"""
    return {
        'actor_id': actor_id,
        'ip_address': get_client_ip(request),
        'user_agent': get_user_agent(request)
    }
