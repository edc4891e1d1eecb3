import decimal
import json
from datetime import date, datetime
from typing import Any

from .strings import to_str


class CustomEncoder(json.JSONEncoder):
    """Helper class to convert JSON documents with datetime, decimals, or bytes."""

    def default(self, o):
        if isinstance(o, decimal.Decimal):
            if o % 1 > 0:
                return float(o)
            else:
                return int(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, bytes):
            return to_str(o)
        if isinstance(o, (set, frozenset)):
            return list(o)
        return super(CustomEncoder, self).default(o)


def to_json_str(obj: Any) -> str:
    """
    Serialize the given object to a JSON string.

    Errors are not swallowed: objects that cannot be represented as JSON raise a ``TypeError`` or
    ``ValueError``, which callers are expected to wrap with their own context.
    """
    return json.dumps(obj, cls=CustomEncoder, allow_nan=False)
