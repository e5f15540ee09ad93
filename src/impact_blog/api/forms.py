"""Request payload helpers shared by the article endpoints.

Article writes accept either a JSON body or a multipart form. Multipart
clients send list and object fields JSON-encoded, so those are decoded
before validation.
"""

import json
from collections.abc import Sequence
from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import QueryParams, UploadFile

from impact_blog.services.content import CoverUpload
from impact_blog.services.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

COVER_FIELD = "coverImage"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def format_validation_errors(errors: Sequence[Any]) -> str:
    """Render pydantic error entries as one readable message."""
    parts = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"


def validate_payload(model: type[ModelT], payload: dict[str, Any]) -> ModelT:
    """Validate a raw payload, raising the application ValidationError."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e.errors())) from e


def query_params_to_dict(params: QueryParams) -> dict[str, Any]:
    """Flatten query params; repeated keys become lists."""
    flattened: dict[str, Any] = {}
    for key in params.keys():
        values = params.getlist(key)
        flattened[key] = values[0] if len(values) == 1 else values
    return flattened


def _decode_json_list(value: Any) -> Any:
    if isinstance(value, list):
        decoded = []
        for item in value:
            item = _decode_json_list(item)
            decoded.extend(item if isinstance(item, list) else [item])
        return decoded
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return []
    try:
        decoded = json.loads(text)
    except ValueError:
        return [part.strip() for part in text.split(",") if part.strip()]
    return decoded if isinstance(decoded, list) else [decoded]


def _decode_json_content(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        decoded = json.loads(value)
    except ValueError:
        return value
    return decoded if isinstance(decoded, str | dict) else value


async def read_article_payload(
    request: Request, max_upload_bytes: int
) -> tuple[dict[str, Any], CoverUpload | None]:
    """Read an article write body and the optional cover upload.

    Raises:
        ValidationError: If a JSON body cannot be parsed or is not an object.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        body = await request.body()
        if not body.strip():
            return {}, None
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ValidationError("Request body must be valid JSON") from e
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return payload, None

    form = await request.form()
    payload = {}
    upload: CoverUpload | None = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key == COVER_FIELD and value.filename:
                # One byte over the limit is enough to reject it later
                data = await value.read(max_upload_bytes + 1)
                upload = CoverUpload(
                    filename=value.filename,
                    content_type=value.content_type or "application/octet-stream",
                    data=data,
                )
            continue
        if key in payload:
            existing = payload[key]
            payload[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            payload[key] = value

    for key in ("tags", "authors"):
        if key in payload:
            payload[key] = _decode_json_list(payload[key])
    if "article_content" in payload:
        payload["article_content"] = _decode_json_content(payload["article_content"])
    return payload, upload
