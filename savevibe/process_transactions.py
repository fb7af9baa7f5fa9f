"""
process_transactions.py
-----------------------
Parse an uploaded CSV of transactions into validated ``TransactionCreate``
rows.  Column names are inferred loosely (``transaction_name``,
``description``, ``name`` ...) so exports from most banks and spending apps
can be dropped in unchanged.
"""

from __future__ import annotations

import io
import logging
from typing import List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

from savevibe.schemas import TransactionCreate

logger = logging.getLogger(__name__)

# Patterns used to identify columns.
DESCRIPTION_PATTERNS = ["transaction_name", "description", "details", "name", "memo", "transaction"]
DATE_PATTERNS = ["date", "posted", "value date"]
AMOUNT_PATTERNS = ["transaction_amount", "amount", "amt", "debit", "withdrawal"]
CATEGORY_PATTERNS = ["category"]
TYPE_PATTERNS = ["type"]
WANT_PATTERNS = ["is_want", "iswant", "want"]
MERCHANT_PATTERNS = ["merchant", "payee"]

DEFAULT_CATEGORY = "uncategorized"


def infer_column(df: pd.DataFrame, patterns: list[str]) -> Optional[str]:
    for pattern in patterns:
        for col in df.columns:
            if pattern in str(col).lower():
                return col
    return None


def _clean_amount(series: pd.Series) -> pd.Series:
    amounts = series.astype(str).str.replace(r"[₹\$,]", "", regex=True)
    amounts = amounts.str.replace(r"\((.*?)\)", r"-\1", regex=True)
    return pd.to_numeric(amounts, errors="coerce")


def _cell(row, col) -> Optional[str]:
    if col is None:
        return None
    value = row[col]
    if pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def parse_statement(content: bytes) -> pd.DataFrame:
    """Normalize a CSV export into description/amount/category/... columns."""
    try:
        df = pd.read_csv(io.BytesIO(content))
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ValueError(f"Could not read CSV: {exc}") from exc

    desc_col = infer_column(df, DESCRIPTION_PATTERNS)
    amount_col = infer_column(df, AMOUNT_PATTERNS)
    if df.empty or not desc_col or not amount_col:
        raise ValueError("CSV must contain a description and an amount column")

    date_col = infer_column(df, DATE_PATTERNS)
    category_col = infer_column(df, CATEGORY_PATTERNS)
    type_col = infer_column(df, TYPE_PATTERNS)
    want_col = infer_column(df, WANT_PATTERNS)
    merchant_col = infer_column(df, MERCHANT_PATTERNS)

    rows = []
    for _, row in df.iterrows():
        category = _cell(row, category_col)
        tx_type = _cell(row, type_col)
        is_want = _cell(row, want_col)
        rows.append({
            "description": _cell(row, desc_col) or "",
            "amount": row[amount_col],
            "category": (category or DEFAULT_CATEGORY).lower(),
            "date": _cell(row, date_col),
            "type": tx_type.lower() if tx_type else "expense",
            "is_want": is_want.lower() == "true" if is_want else True,
            "merchant": _cell(row, merchant_col),
        })

    out = pd.DataFrame(rows)
    out["amount"] = _clean_amount(out["amount"])
    # Negative and bracketed amounts are debits
    debits = out["amount"] < 0
    out.loc[debits, "type"] = "expense"
    out["amount"] = out["amount"].abs()
    out["date"] = pd.to_datetime(out["date"], errors="coerce")
    return out


def to_transactions(df: pd.DataFrame) -> Tuple[List[TransactionCreate], int]:
    """Validate parsed rows; returns the good rows and the count skipped."""
    good: List[TransactionCreate] = []
    skipped = 0
    for _, row in df.iterrows():
        data = row.to_dict()
        data["date"] = None if pd.isna(data["date"]) else data["date"].to_pydatetime()
        data["merchant"] = None if pd.isna(data["merchant"]) else data["merchant"]
        data["is_want"] = bool(data["is_want"])
        if pd.isna(data["amount"]):
            skipped += 1
            continue
        try:
            good.append(TransactionCreate.model_validate(data))
        except ValidationError as exc:
            logger.warning("Skipping CSV row %r: %s", data.get("description"), exc.errors()[0]["msg"])
            skipped += 1
    return good, skipped


def parse_transactions_csv(content: bytes) -> Tuple[List[TransactionCreate], int]:
    return to_transactions(parse_statement(content))
