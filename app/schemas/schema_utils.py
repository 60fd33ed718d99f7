"""Shared utilities for schema validation."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from bson import Decimal128
from pydantic import BeforeValidator


def parse_mongo_datetime(v: Any) -> Any:
    """Parse MongoDB Extended JSON datetime format or return as-is if already datetime.

    MongoDB Extended JSON format: {'$date': '2024-11-01T08:00:00Z'}
    This can occur when data is inserted via mongoimport or other tools.
    """
    if isinstance(v, datetime):
        return v
    if isinstance(v, dict) and "$date" in v:
        return datetime.fromisoformat(v["$date"].replace("Z", "+00:00"))
    return v


def parse_mongo_decimal(v: Any) -> Any:
    """Unwrap BSON Decimal128 (and its Extended JSON form) into `Decimal`."""
    if isinstance(v, Decimal128):
        return v.to_decimal()
    if isinstance(v, dict) and "$numberDecimal" in v:
        return Decimal(v["$numberDecimal"])
    return v


MongoDecimal = Annotated[Decimal, BeforeValidator(parse_mongo_decimal)]
