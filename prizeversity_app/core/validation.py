"""Request payload loading with marshmallow schemas."""

from flask import request
from marshmallow import Schema
from marshmallow import ValidationError as SchemaValidationError

from .error_handlers import ValidationError


def load_payload(schema: Schema) -> dict:
    """Load the JSON body through a schema, raising the economy's ValidationError."""
    try:
        return schema.load(request.get_json(silent=True) or {})
    except SchemaValidationError as exc:
        raise ValidationError('Invalid request payload', errors=exc.messages) from exc
