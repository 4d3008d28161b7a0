"""JSON helpers for engine values and the application store"""
import json
from decimal import Decimal
from datetime import datetime, date, time
from typing import Any


class ExplorerJSONEncoder(json.JSONEncoder):
    """
    JSON encoder that handles values coming back from the engine:
    - Decimal objects
    - datetime/date/time objects
    - bytes (rendered as a size placeholder)
    """
    
    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        elif isinstance(obj, (bytes, bytearray, memoryview)):
            return f"<{len(bytes(obj))} bytes>"
        return super().default(obj)


def json_dumps(obj: Any, **kwargs) -> str:
    """
    JSON dumps with the explorer encoder.
    
    Args:
        obj: Object to serialize
        **kwargs: Additional arguments to pass to json.dumps
        
    Returns:
        JSON string
    """
    return json.dumps(obj, cls=ExplorerJSONEncoder, **kwargs)


def compact_json(obj: Any) -> str:
    """Canonical single-line JSON text (no whitespace after separators)"""
    return json_dumps(obj, separators=(",", ":"), ensure_ascii=False)


def to_json_value(value: Any) -> Any:
    """
    Convert a raw engine value into a JSON-friendly value.
    
    Decimals become strings so precision survives, temporal values become
    ISO strings and blobs become a size placeholder. Containers are
    converted recursively.
    
    Args:
        value: Raw value from a database cursor
        
    Returns:
        JSON-serializable value
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        # NaN/Infinity are not representable in JSON
        return value if value == value and value not in (float("inf"), float("-inf")) else None
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(bytes(value))} bytes>"
    if isinstance(value, dict):
        return {str(key): to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    return str(value)
