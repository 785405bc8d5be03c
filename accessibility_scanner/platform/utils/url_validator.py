from typing import Tuple

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_http_url = TypeAdapter(AnyHttpUrl)


def normalize_url(url: str) -> Tuple[str, bool]:

    url = url.strip()

    if not url.lower().startswith(("http://", "https://")):
        normalized = f"https://{url}"
        return normalized, True

    return url, False


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, was_modified = normalize_url(url)

    try:
        parsed = _http_url.validate_python(normalized_url)
    except PydanticValidationError as e:
        reason = e.errors()[0].get("msg", "invalid URL")
        if was_modified:
            return False, normalized_url, f"Invalid URL format after adding https:// scheme: {reason}"
        return False, normalized_url, f"Invalid URL format: {reason}"

    if not parsed.host:
        return False, normalized_url, "Invalid URL format: missing domain"

    return True, normalized_url, ""
