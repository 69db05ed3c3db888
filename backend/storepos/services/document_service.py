# Overview: Human-readable document numbers (receipts, returns) from per-day sequences.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from storepos.time_utils import business_day
from .concurrency import RetryableContention


DOCUMENT_TYPE_RECEIPT = "RECEIPT"
DOCUMENT_TYPE_RETURN = "RETURN"


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 4,
    when: datetime | None = None,
) -> str:
    """
    Allocate the next document number for a type within the current day.

    Format: {prefix}-{YYYYMMDD}-{n}. The increment is a single UPDATE in the
    caller's transaction, so a rolled-back sale releases nothing to anyone
    else and two committed sales never share a number. Does not commit.
    """
    if not document_type:
        raise ValueError("document_type is required")

    period = business_day(when)
    stmt = (
        update(DocumentSequence.__table__)
        .where(
            DocumentSequence.__table__.c.document_type == document_type,
            DocumentSequence.__table__.c.period == period,
        )
        .values(next_number=DocumentSequence.__table__.c.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(document_type=document_type, period=period, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Another request created today's row first; replay the whole operation.
            db.session.rollback()
            raise RetryableContention(f"{document_type} sequence for {period} created concurrently") from exc
        next_num = 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"
