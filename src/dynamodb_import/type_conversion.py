"""Type conversion utilities for DynamoDB export attribute values."""

import base64
import binascii

from .errors import ItemDecodeError

DATA_TYPES_URL = (
    "https://docs.aws.amazon.com/amazondynamodb/latest/developerguide/"
    "HowItWorks.NamingRulesDataTypes.html#HowItWorks.DataTypes"
)


def _data_type(value):
    """Return the single type tag of an export attribute value."""
    if not isinstance(value, dict) or len(value) != 1:
        raise ItemDecodeError(f"an attribute value must have exactly one type tag, got {value!r}")
    return next(iter(value))


def _decode_binary(text):
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, TypeError) as error:
        raise ItemDecodeError(f"invalid base64 binary value {text!r}: {error}") from error


def _member(value, data_type, expected):
    """Return the member of a tagged value after checking its JSON type."""
    member = value[data_type]
    if not isinstance(member, expected):
        raise ItemDecodeError(
            f"invalid {data_type} attribute value, got {type(member).__name__}: {member!r}"
        )
    return member


def _set_members(value, data_type):
    members = _member(value, data_type, list)
    for member in members:
        if not isinstance(member, str):
            raise ItemDecodeError(
                f"invalid {data_type} attribute value, members must be strings: {members!r}"
            )
    return members


def convert_export_value(value):
    """
    Convert an export attribute value to the low-level client representation.

    DynamoDB exports encode binary data as base64 text; boto3 clients
    expect bytes. Every other member is copied as is.

    Args:
        value: Tagged value such as {"S": "abc"} or {"L": [{"N": "1"}]}

    Returns:
        Tagged value accepted by the DynamoDB client
    """
    data_type = _data_type(value)

    if data_type == "NULL":
        return {"NULL": _member(value, data_type, bool)}
    if data_type == "BOOL":
        return {"BOOL": _member(value, data_type, bool)}
    if data_type == "B":
        return {"B": _decode_binary(_member(value, data_type, str))}
    if data_type == "BS":
        return {"BS": [_decode_binary(v) for v in _set_members(value, data_type)]}
    if data_type == "N":
        return {"N": _member(value, data_type, str)}
    if data_type == "NS":
        return {"NS": list(_set_members(value, data_type))}
    if data_type == "S":
        return {"S": _member(value, data_type, str)}
    if data_type == "SS":
        return {"SS": list(_set_members(value, data_type))}
    if data_type == "L":
        return {"L": [convert_export_value(v) for v in _member(value, data_type, list)]}
    if data_type == "M":
        return {"M": convert_export_item(_member(value, data_type, dict))}

    raise ItemDecodeError(f"unknown attribute value type {data_type!r}")


def convert_export_item(item):
    """Convert every attribute of an exported item."""
    if not isinstance(item, dict):
        raise ItemDecodeError(f"an item must be a JSON object, got {type(item).__name__}")
    return {name: convert_export_value(value) for name, value in item.items()}


def stringify(value):
    """
    Render a scalar export attribute value as a string.

    Used only to group items by partition key value, so the rendering
    just has to be distinct per value. Sets, lists and maps are rejected.
    """
    data_type = _data_type(value)

    if data_type == "NULL":
        return ""
    if data_type == "BOOL":
        return "true" if _member(value, data_type, bool) else "false"
    if data_type == "B":
        return _decode_binary(_member(value, data_type, str)).decode("latin-1")
    if data_type in ("N", "S"):
        return _member(value, data_type, str)

    raise ItemDecodeError(
        f"only scalar types can be stringified, got {data_type!r}. for more, see: {DATA_TYPES_URL}"
    )
