"""Claims CSV parsing.

The export has no stable header names, so columns are mapped by position.
Blank or unparsable cells become ``None``; only structurally broken input
(wrong delimiter, undecodable bytes, malformed quoting) raises.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import date
from typing import Optional, Union

from adjudicator.schemas import ClaimRecord, ClaimStatus

logger = logging.getLogger(__name__)

# Positional column layout of the claims export (0-indexed).
COL_TRACKING_NUMBER = 0
COL_CLAIM_DATE = 1
COL_STREET = 3
COL_CITY = 4
COL_STATE = 5
COL_ZIP = 6
COL_LEASE_START = 7
COL_LEASE_END = 8
COL_MOVE_OUT = 9
COL_MONTHLY_RENT = 10
COL_MANAGEMENT_COMPANY = 22
COL_GROUP_NUMBER = 24
COL_TREATY_NUMBER = 25
COL_POLICY = 26
COL_MAX_BENEFIT = 27
COL_STATUS = 28
COL_APPROVED_BENEFIT = 29


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def _cell(row: list[str], index: int) -> Optional[str]:
    if index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def parse_dollar_amount(value: Optional[str]) -> Optional[float]:
    """Parse ``"$2,500.00"``-style cells.

    Blank, unparsable, non-finite (``NaN``, ``inf``) or negative amounts give
    ``None``.
    """
    if value is None:
        return None
    cleaned = value.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        amount = float(cleaned)
    except ValueError:
        logger.debug("Unparsable dollar amount %r", value)
        return None
    if not math.isfinite(amount) or amount < 0:
        logger.debug("Rejected dollar amount %r", value)
        return None
    return amount


def build_property_address(
    street: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> Optional[str]:
    parts = [p for p in (street, city, state, zip_code) if p]
    return ", ".join(parts) if parts else None


def normalize_status(value: Optional[str]) -> Optional[ClaimStatus]:
    if not value:
        return None
    normalized = value.strip().lower()
    if normalized in ("posted", "declined"):
        return normalized  # type: ignore[return-value]
    return None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse an ``MM/DD/YY`` (or ``MM/DD/YYYY``) string.

    Two-digit years below 50 are read as 20xx, the rest as 19xx.  Anything
    that does not form a real calendar date gives ``None``.
    """
    if not value:
        return None
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(p) for p in parts)
    except ValueError:
        return None
    if len(parts[2].strip()) <= 2:
        year += 2000 if year < 50 else 1900
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%m/%d/%y")


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def _row_to_claim(row: list[str]) -> ClaimRecord:
    return ClaimRecord(
        tracking_number=_cell(row, COL_TRACKING_NUMBER),
        claim_date=_cell(row, COL_CLAIM_DATE),
        property_address=build_property_address(
            _cell(row, COL_STREET),
            _cell(row, COL_CITY),
            _cell(row, COL_STATE),
            _cell(row, COL_ZIP),
        ),
        lease_start_date=_cell(row, COL_LEASE_START),
        lease_end_date=_cell(row, COL_LEASE_END),
        move_out_date=_cell(row, COL_MOVE_OUT),
        monthly_rent=parse_dollar_amount(_cell(row, COL_MONTHLY_RENT)),
        property_management_company=_cell(row, COL_MANAGEMENT_COMPANY),
        group_number=_cell(row, COL_GROUP_NUMBER),
        treaty_number=_cell(row, COL_TREATY_NUMBER),
        policy=_cell(row, COL_POLICY),
        max_benefit=parse_dollar_amount(_cell(row, COL_MAX_BENEFIT)),
        status=normalize_status(_cell(row, COL_STATUS)),
        approved_benefit_amount=parse_dollar_amount(_cell(row, COL_APPROVED_BENEFIT)),
        documents=[],
        claude_files=[],
    )


def parse_claims(
    content: Union[str, bytes],
    row_limit: Optional[int] = None,
) -> list[ClaimRecord]:
    """Parse a claims export into :class:`ClaimRecord` objects.

    Args:
        content: Raw CSV text, or UTF-8 bytes (a leading BOM is dropped).
        row_limit: Maximum number of data rows to read, header excluded.

    Returns:
        One record per data row with a tracking number, in file order.  The
        records carry empty ``documents`` / ``claude_files`` lists.

    Raises:
        ValueError: The header parses to a single column, which means the
            file is not comma-delimited.
        UnicodeDecodeError: ``content`` is bytes but not valid UTF-8.
        csv.Error: The text is not well-formed CSV.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    elif content.startswith("﻿"):
        content = content[1:]

    reader = csv.reader(io.StringIO(content), strict=True)
    header = next(reader, None)
    if header is None:
        return []
    if len(header) < 2:
        raise ValueError(
            "Claims CSV header has a single column; expected comma-delimited input"
        )

    claims: list[ClaimRecord] = []
    data_rows = 0
    for line_no, row in enumerate(reader, start=2):
        if not any(cell.strip() for cell in row):
            continue
        if row_limit is not None and data_rows >= row_limit:
            break
        data_rows += 1
        if _cell(row, COL_TRACKING_NUMBER) is None:
            logger.warning("Skipping CSV line %d: missing tracking number", line_no)
            continue
        claims.append(_row_to_claim(row))

    logger.info("Parsed %d claim(s) from %d data row(s)", len(claims), data_rows)
    return claims
