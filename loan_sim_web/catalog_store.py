"""Persistence layer for the product catalog and investment requests.

The web app keeps loan products, their secondary fees, investment products
and client investment requests in a relational database through SQLAlchemy.
It defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Records leave the store as plain dictionaries; ``to_loan_product`` and
``to_investment_product`` turn catalog rows into the engine's dataclasses.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    create_engine,
    select,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from loan_sim.data_models import InterestMode, InvestmentProduct, LoanProduct, SecondaryFee
from loan_sim.errors import InvalidFeeError, InvalidRateError
from loan_sim.utils import parse_fee_kind

logger = logging.getLogger(__name__)

Base = declarative_base()

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
DECISION_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


class RecordNotFound(LookupError):
    """No row exists with the requested id."""


class WorkflowError(Exception):
    """The requested status transition is not allowed."""


loan_product_fees = Table(
    "loan_product_fees",
    Base.metadata,
    Column("loan_product_id", Integer, ForeignKey("loan_products.id"), primary_key=True),
    Column("fee_id", Integer, ForeignKey("secondary_fees.id"), primary_key=True),
)


class SecondaryFeeModel(Base):
    __tablename__ = "secondary_fees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False)
    value = Column(Float, nullable=False)

    loan_products = relationship("LoanProductModel", secondary=loan_product_fees, back_populates="fees")


class LoanProductModel(Base):
    __tablename__ = "loan_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    annual_rate = Column(Float, nullable=False)
    min_term = Column(Integer, nullable=False, default=1)
    max_term = Column(Integer, nullable=False, default=12)
    active = Column(Boolean, nullable=False, default=True)

    fees = relationship(
        "SecondaryFeeModel",
        secondary=loan_product_fees,
        back_populates="loan_products",
        order_by=SecondaryFeeModel.id,
    )


class InvestmentProductModel(Base):
    __tablename__ = "investment_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    annual_rate = Column(Float, nullable=False)
    min_term = Column(Integer, nullable=False)
    max_term = Column(Integer, nullable=False)
    min_amount = Column(Float, nullable=False)
    max_amount = Column(Float, nullable=False)
    interest_mode = Column(String(20), nullable=False, default=InterestMode.COMPOUND.value)
    active = Column(Boolean, nullable=False, default=True)


class InvestmentRequestModel(Base):
    __tablename__ = "investment_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("investment_products.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    term_months = Column(Integer, nullable=False)
    projected_final_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    admin_note = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    product = relationship("InvestmentProductModel")


def _validate_rate(value: Any) -> float:
    rate = float(value)
    if not math.isfinite(rate):
        raise InvalidRateError(rate, "must be a finite number")
    if rate < 0:
        raise InvalidRateError(rate)
    return rate


def _int_or_default(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key)
    return default if value is None else int(value)


def _flag(value: Any) -> bool:
    # Accepts JSON booleans as well as "true"/"false" strings
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
        raise ValueError(f"Invalid boolean value: {value}")
    return bool(value)


def _validate_term_bounds(min_term: int, max_term: int) -> None:
    if min_term < 1:
        raise ValueError("Minimum term must be at least 1 month")
    if max_term < min_term:
        raise ValueError("Maximum term cannot be lower than the minimum term")


def _require(data: Mapping[str, Any], *keys: str) -> None:
    missing = [k for k in keys if data.get(k) in (None, "")]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")


class CatalogStore:
    """Database-backed product catalog and request store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    # Secondary fees ---------------------------------------------------------

    def list_fees(self) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows: Iterable[SecondaryFeeModel] = session.execute(
                select(SecondaryFeeModel).order_by(SecondaryFeeModel.name.asc())
            ).scalars()
            return [self._fee_to_dict(row) for row in rows]

    def create_fee(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        _require(data, "name", "kind", "value")
        row = SecondaryFeeModel()
        self._apply_fee_fields(row, data)
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            logger.info("Created secondary fee %s (%s)", row.id, row.name)
            return self._fee_to_dict(row)

    def update_fee(self, fee_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        _require(data, "name", "kind", "value")
        with self._session_factory() as session:
            row = self._get_or_raise(session, SecondaryFeeModel, fee_id)
            self._apply_fee_fields(row, data)
            session.commit()
            return self._fee_to_dict(row)

    def delete_fee(self, fee_id: int) -> None:
        with self._session_factory() as session:
            row = self._get_or_raise(session, SecondaryFeeModel, fee_id)
            # Association rows go with the fee through the relationship
            session.delete(row)
            session.commit()
            logger.info("Deleted secondary fee %s", fee_id)

    # Loan products ----------------------------------------------------------

    def list_loan_products(self, active_only: bool = False) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            query = select(LoanProductModel).order_by(LoanProductModel.id.desc())
            if active_only:
                query = query.where(LoanProductModel.active.is_(True))
            rows: Iterable[LoanProductModel] = session.execute(query).scalars()
            return [self._loan_to_dict(row) for row in rows]

    def get_loan_product(self, product_id: int) -> Dict[str, Any]:
        with self._session_factory() as session:
            return self._loan_to_dict(self._get_or_raise(session, LoanProductModel, product_id))

    def create_loan_product(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        _require(data, "name", "annual_rate")
        with self._session_factory() as session:
            row = LoanProductModel()
            self._apply_loan_fields(session, row, data)
            session.add(row)
            session.commit()
            logger.info("Created loan product %s (%s)", row.id, row.name)
            return self._loan_to_dict(row)

    def update_loan_product(self, product_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Update a loan product.

        When ``fee_ids`` is present the product's fee links are replaced by
        exactly that list; when it is absent the links are left untouched.
        """
        _require(data, "name", "annual_rate")
        with self._session_factory() as session:
            row = self._get_or_raise(session, LoanProductModel, product_id)
            self._apply_loan_fields(session, row, data)
            session.commit()
            return self._loan_to_dict(row)

    def delete_loan_product(self, product_id: int) -> None:
        with self._session_factory() as session:
            row = self._get_or_raise(session, LoanProductModel, product_id)
            row.fees = []
            session.delete(row)
            session.commit()
            logger.info("Deleted loan product %s", product_id)

    def to_loan_product(self, product_id: int) -> LoanProduct:
        record = self.get_loan_product(product_id)
        return LoanProduct(
            name=record["name"],
            annual_rate=record["annual_rate"],
            min_term=record["min_term"],
            max_term=record["max_term"],
            secondary_fees=[
                SecondaryFee(name=f["name"], kind=parse_fee_kind(f["kind"]), value=f["value"])
                for f in record["secondary_fees"]
            ],
            description=record["description"],
            active=record["active"],
        )

    # Investment products ----------------------------------------------------

    def list_investment_products(self, active_only: bool = False) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            query = select(InvestmentProductModel).order_by(InvestmentProductModel.id.asc())
            if active_only:
                query = query.where(InvestmentProductModel.active.is_(True))
            rows: Iterable[InvestmentProductModel] = session.execute(query).scalars()
            return [self._investment_to_dict(row) for row in rows]

    def get_investment_product(self, product_id: int) -> Dict[str, Any]:
        with self._session_factory() as session:
            return self._investment_to_dict(self._get_or_raise(session, InvestmentProductModel, product_id))

    def create_investment_product(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        _require(data, "name", "annual_rate", "min_term", "max_term", "min_amount", "max_amount")
        row = InvestmentProductModel()
        self._apply_investment_fields(row, data)
        with self._session_factory() as session:
            session.add(row)
            session.commit()
            logger.info("Created investment product %s (%s)", row.id, row.name)
            return self._investment_to_dict(row)

    def update_investment_product(self, product_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
        _require(data, "name", "annual_rate", "min_term", "max_term", "min_amount", "max_amount")
        with self._session_factory() as session:
            row = self._get_or_raise(session, InvestmentProductModel, product_id)
            self._apply_investment_fields(row, data)
            session.commit()
            return self._investment_to_dict(row)

    def delete_investment_product(self, product_id: int) -> None:
        with self._session_factory() as session:
            row = self._get_or_raise(session, InvestmentProductModel, product_id)
            has_requests = session.execute(
                select(InvestmentRequestModel.id).where(InvestmentRequestModel.product_id == product_id)
            ).first()
            if has_requests:
                raise WorkflowError("Investment product has requests; deactivate it instead")
            session.delete(row)
            session.commit()
            logger.info("Deleted investment product %s", product_id)

    def to_investment_product(self, product_id: int) -> InvestmentProduct:
        record = self.get_investment_product(product_id)
        return InvestmentProduct(
            name=record["name"],
            annual_rate=record["annual_rate"],
            min_term=record["min_term"],
            max_term=record["max_term"],
            min_amount=record["min_amount"],
            max_amount=record["max_amount"],
            interest_mode=InterestMode(record["interest_mode"]),
            description=record["description"],
            active=record["active"],
        )

    # Investment requests ----------------------------------------------------

    def create_request(
        self, product_id: int, amount: float, term_months: int, projected_final_amount: float
    ) -> Dict[str, Any]:
        with self._session_factory() as session:
            self._get_or_raise(session, InvestmentProductModel, product_id)
            row = InvestmentRequestModel(
                product_id=product_id,
                amount=amount,
                term_months=term_months,
                projected_final_amount=projected_final_amount,
                status=STATUS_PENDING,
                admin_note="",
            )
            session.add(row)
            session.commit()
            logger.info("Created investment request %s for product %s", row.id, product_id)
            return self._request_to_dict(row)

    def list_requests(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            query = select(InvestmentRequestModel).order_by(
                InvestmentRequestModel.created_at.desc(), InvestmentRequestModel.id.desc()
            )
            if status:
                query = query.where(InvestmentRequestModel.status == status)
            rows: Iterable[InvestmentRequestModel] = session.execute(query).scalars()
            return [self._request_to_dict(row) for row in rows]

    def decide_request(self, request_id: int, status: str, note: str = "") -> Dict[str, Any]:
        """Approve or reject a pending request."""
        if status not in DECISION_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(DECISION_STATUSES)}; got {status}")
        with self._session_factory() as session:
            row = self._get_or_raise(session, InvestmentRequestModel, request_id)
            if row.status != STATUS_PENDING:
                raise WorkflowError(f"Request {request_id} is already {row.status}")
            row.status = status
            row.admin_note = note or ""
            session.commit()
            logger.info("Investment request %s %s", request_id, status)
            return self._request_to_dict(row)

    def request_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "total": 0,
            STATUS_PENDING: 0,
            STATUS_APPROVED: 0,
            STATUS_REJECTED: 0,
            "total_amount": 0.0,
        }
        with self._session_factory() as session:
            rows = session.execute(
                select(InvestmentRequestModel.status, InvestmentRequestModel.amount)
            ).all()
        for status, amount in rows:
            stats["total"] += 1
            stats[status] = stats.get(status, 0) + 1
            stats["total_amount"] += amount
        return stats

    # Helpers ----------------------------------------------------------------

    @staticmethod
    def _get_or_raise(session, model, record_id: int):
        row = session.get(model, record_id)
        if row is None:
            raise RecordNotFound(f"{model.__tablename__} record {record_id} not found")
        return row

    @staticmethod
    def _apply_fee_fields(row: SecondaryFeeModel, data: Mapping[str, Any]) -> None:
        name = str(data["name"]).strip()
        value = float(data["value"])
        if not math.isfinite(value) or value < 0:
            raise InvalidFeeError(name, value)
        row.name = name
        row.kind = parse_fee_kind(data["kind"]).value
        row.value = value

    @staticmethod
    def _apply_loan_fields(session, row: LoanProductModel, data: Mapping[str, Any]) -> None:
        min_term = _int_or_default(data, "min_term", 1)
        max_term = _int_or_default(data, "max_term", 12)
        _validate_term_bounds(min_term, max_term)
        row.name = str(data["name"]).strip()
        row.description = data.get("description") or ""
        row.annual_rate = _validate_rate(data["annual_rate"])
        row.min_term = min_term
        row.max_term = max_term
        row.active = _flag(data.get("active", True))
        if data.get("fee_ids") is not None:
            fee_ids = {int(fid) for fid in data["fee_ids"] if fid is not None}
            fees = session.execute(
                select(SecondaryFeeModel).where(SecondaryFeeModel.id.in_(fee_ids))
            ).scalars().all()
            missing = fee_ids - {fee.id for fee in fees}
            if missing:
                raise RecordNotFound(f"secondary_fees records {sorted(missing)} not found")
            row.fees = list(fees)

    @staticmethod
    def _apply_investment_fields(row: InvestmentProductModel, data: Mapping[str, Any]) -> None:
        min_term = int(data["min_term"])
        max_term = int(data["max_term"])
        _validate_term_bounds(min_term, max_term)
        min_amount = float(data["min_amount"])
        max_amount = float(data["max_amount"])
        if not (math.isfinite(min_amount) and math.isfinite(max_amount)):
            raise ValueError("Amount bounds must be finite numbers")
        if min_amount <= 0 or max_amount < min_amount:
            raise ValueError("Amount bounds must be positive and max_amount >= min_amount")
        row.name = str(data["name"]).strip()
        row.description = data.get("description") or ""
        row.annual_rate = _validate_rate(data["annual_rate"])
        row.min_term = min_term
        row.max_term = max_term
        row.min_amount = min_amount
        row.max_amount = max_amount
        row.interest_mode = InterestMode(data.get("interest_mode") or InterestMode.COMPOUND.value).value
        row.active = _flag(data.get("active", True))

    @staticmethod
    def _fee_to_dict(row: SecondaryFeeModel) -> Dict[str, Any]:
        return {"id": row.id, "name": row.name, "kind": row.kind, "value": row.value}

    @classmethod
    def _loan_to_dict(cls, row: LoanProductModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "annual_rate": row.annual_rate,
            "min_term": row.min_term,
            "max_term": row.max_term,
            "active": row.active,
            "secondary_fees": [cls._fee_to_dict(fee) for fee in row.fees],
        }

    @staticmethod
    def _investment_to_dict(row: InvestmentProductModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "annual_rate": row.annual_rate,
            "min_term": row.min_term,
            "max_term": row.max_term,
            "min_amount": row.min_amount,
            "max_amount": row.max_amount,
            "interest_mode": row.interest_mode,
            "active": row.active,
        }

    @staticmethod
    def _request_to_dict(row: InvestmentRequestModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "product_id": row.product_id,
            "product_name": row.product.name,
            "amount": row.amount,
            "term_months": row.term_months,
            "projected_final_amount": row.projected_final_amount,
            "estimated_gain": row.projected_final_amount - row.amount,
            "status": row.status,
            "admin_note": row.admin_note,
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: Optional[str]) -> CatalogStore:
    return CatalogStore(url or "sqlite:///loan_sim_data.sqlite3")
