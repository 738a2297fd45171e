import time

from itsdangerous import BadSignature, URLSafeSerializer

from config import get_settings

CSRF_HEADER = "X-CSRF-Token"


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.secret_key, salt="csrf-token")


def generate_csrf_token(user_id: str, max_age_hours: int = 12) -> str:
    issued_at = int(time.time())
    token_data = {"u": user_id, "exp": issued_at + (max_age_hours * 3600)}
    return _serializer().dumps(token_data)


def validate_csrf_token(token: str, user_id: str) -> bool:
    if not token:
        return False
    try:
        data = _serializer().loads(token)
    except BadSignature:
        return False

    if not isinstance(data, dict) or data.get("u") != user_id:
        return False

    return int(time.time()) <= int(data.get("exp", 0))
