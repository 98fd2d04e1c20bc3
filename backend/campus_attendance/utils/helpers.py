"""Helper functions for the application."""
from datetime import datetime, timezone
from flask import jsonify, request
from typing import Any, Tuple

def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def handle_error(message, status_code: int):
    """Handle application errors with consistent format.

    4xx responses are client failures ("fail"), 5xx are server errors ("error").
    """
    return jsonify({
        'status': 'fail' if status_code < 500 else 'error',
        'message': str(message)
    }), status_code

def success_response(data: Any = None, message: str = None, status_code: int = 200):
    """Return consistent success response."""
    response = {'status': 'success'}

    if message:
        response['message'] = message

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code

def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return handle_error(message, status_code)

def client_info() -> Tuple[str, str]:
    """IP address and user agent of the current request."""
    ip_address = request.headers.get('X-Forwarded-For', request.remote_addr or 'Unknown')
    ip_address = ip_address.split(',')[0].strip()
    device_info = request.headers.get('User-Agent', 'Unknown')
    return ip_address, device_info

def stringify_ids(value: Any) -> Any:
    """Recursively turn int ids (keys named id / *_id / *Id) into strings."""
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if isinstance(item, int) and not isinstance(item, bool) and \
                    (key == 'id' or key.endswith('_id') or key.endswith('Id')):
                result[key] = str(item)
            else:
                result[key] = stringify_ids(item)
        return result
    if isinstance(value, list):
        return [stringify_ids(item) for item in value]
    return value
