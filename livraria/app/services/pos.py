"""Sale finalization.

Turns a cart into a persisted sale in one transaction:

    validating -> allocating -> persisting -> ledger_updating -> done

The sale header, its items and the ``saida`` movements for every item are
committed together; a failure at any step rolls all of them back.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from livraria.app.core.exceptions import (
    BookNotFoundError,
    EmptyCartError,
    InsufficientStockError,
    InvalidQuantityError,
    SaleAlreadyCanceledError,
    SaleFinalizationError,
    SaleNotFoundError,
)
from livraria.app.core.money import ZERO, to_currency, format_brl
from livraria.app.core.session import SessionContext
from livraria.app.models.customer import Customer
from livraria.app.models.inventory import Book, MovementReason, MovementType
from livraria.app.models.pos import PaymentMethod, PaymentStatus, Sale, SaleItem
from livraria.app.schemas.pos import FinalizedSaleOut, SaleRequest
from livraria.app.services.audit import log_action
from livraria.app.services.cart import Cart, CustomerRef, LineItem
from livraria.app.services.discounts import AllocationResult, GeneralDiscount, allocate_general_discount
from livraria.app.services.sales import sale_item_to_out
from livraria.app.services.stock import get_product, record_movement, sale_reference

logger = logging.getLogger(__name__)


class FinalizeStep(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ALLOCATING = "allocating"
    PERSISTING = "persisting"
    LEDGER_UPDATING = "ledger_updating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FinalizedSale:
    sale: Sale
    subtotal: Decimal
    discount_total: Decimal
    general_discount: Decimal
    total: Decimal
    allocation: AllocationResult = field(default_factory=AllocationResult)
    replayed: bool = False

    @property
    def total_display(self) -> str:
        return format_brl(self.total)


@dataclass
class SaleLine:
    """One cart line priced in whole cents, as it is persisted.

    The sale total is the sum of these line totals, so the header always
    equals the sum of its items even for sub-cent catalogue prices.
    """

    item: LineItem
    value: Decimal
    discount: Decimal
    total: Decimal

    @classmethod
    def from_item(cls, item: LineItem) -> SaleLine:
        value = to_currency(item.line_value)
        discount = min(to_currency(item.effective_discount), value)
        return cls(item=item, value=value, discount=discount, total=value - discount)


# ─── Cart assembly ──────────────────────────────────────────────────────────


def build_cart(db: Session, lines: Iterable, customer_id: UUID | None = None) -> Cart:
    """Build a cart from request lines, pricing every book as of now.

    Unlike ``Cart.add_item``, an out-of-stock book is an error here: the
    register asked for it explicitly.
    """
    cart = Cart()
    if customer_id:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise ValueError(f"Customer {customer_id} not found")
        cart.set_customer(CustomerRef(id=customer.id, name=customer.name))

    for line in lines:
        product = get_product(db, line.book_id)
        if product.quantity <= 0:
            raise InsufficientStockError(product.id, product.quantity, line.quantity, product.title)
        cart.add_item(product)
        cart.update_quantity(product.id, line.quantity)
        if line.discount:
            cart.update_discount(product.id, line.discount, line.discount_kind.value)
    return cart


# ─── Finalizer ──────────────────────────────────────────────────────────────


class SaleFinalizer:
    """Runs one sale through the finalization steps.

    ``step`` reflects where the last run stopped; after a failure it is
    ``FAILED`` and ``failed_step`` names the step that raised.
    """

    def __init__(self, db: Session, ctx: SessionContext) -> None:
        self.db = db
        self.ctx = ctx
        self.step = FinalizeStep.IDLE
        self.failed_step: FinalizeStep | None = None

    def _fail(self) -> None:
        self.failed_step = self.step
        self.step = FinalizeStep.FAILED

    def replay(self, idempotency_key: str | None) -> FinalizedSale | None:
        """Return the sale already written under *idempotency_key*, if any."""
        if not idempotency_key:
            return None
        sale = self.db.query(Sale).filter(Sale.idempotency_key == idempotency_key).first()
        if not sale:
            return None
        logger.info("Replaying sale %s for idempotency key %s", sale.id, idempotency_key)
        subtotal = sum((to_currency(item.unit_price * item.quantity) for item in sale.items), ZERO)
        discount_total = sum((item.discount for item in sale.items), ZERO)
        self.step = FinalizeStep.DONE
        return FinalizedSale(
            sale=sale,
            subtotal=to_currency(subtotal),
            discount_total=to_currency(discount_total),
            general_discount=ZERO,
            total=to_currency(sale.total),
            replayed=True,
        )

    def _validate(self, cart: Cart) -> None:
        self.ctx.require_active()
        if cart.is_empty:
            raise EmptyCartError()
        for item in cart:
            if item.quantity <= 0:
                raise InvalidQuantityError(item.quantity)
            book = self.db.get(Book, item.product_id)
            if not book:
                raise BookNotFoundError(item.product_id)
            if item.quantity > book.quantity:
                raise InsufficientStockError(book.id, book.quantity, item.quantity, book.title)

    def finalize(
        self,
        cart: Cart,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        general_discount: GeneralDiscount | None = None,
        idempotency_key: str | None = None,
        notes: str | None = None,
    ) -> FinalizedSale:
        """Persist *cart* as a sale and take its items out of stock.

        The cart itself is never mutated; the general discount is allocated
        on a snapshot. Validation errors are raised before anything is
        written. Database errors roll back and surface as
        ``SaleFinalizationError`` naming the failed step.
        """
        db = self.db
        self.step = FinalizeStep.VALIDATING
        self.failed_step = None

        replayed = self.replay(idempotency_key)
        if replayed:
            return replayed

        try:
            self._validate(cart)
            method = PaymentMethod(payment_method)
        except ValueError:
            self._fail()
            raise

        self.step = FinalizeStep.ALLOCATING
        working = cart.snapshot()
        allocation = allocate_general_discount(working, general_discount)
        lines = [SaleLine.from_item(item) for item in working]

        subtotal = sum((line.value for line in lines), ZERO)
        discount_total = sum((line.discount for line in lines), ZERO)
        total = sum((line.total for line in lines), ZERO)

        note_parts = [notes] if notes else []
        if allocation.applied:
            note_parts.append(f"Desconto geral aplicado: {format_brl(allocation.allocated)}")

        self.step = FinalizeStep.PERSISTING
        try:
            sale = Sale(
                customer_id=working.customer.id if working.customer else None,
                user_id=self.ctx.user_id,
                total=total,
                payment_method=method,
                payment_status=PaymentStatus.PAID,
                notes="\n".join(note_parts) or None,
                idempotency_key=idempotency_key,
                created_at=datetime.now(timezone.utc),
            )
            db.add(sale)
            db.flush()

            for position, line in enumerate(lines):
                db.add(SaleItem(
                    sale_id=sale.id,
                    book_id=line.item.product_id,
                    position=position,
                    quantity=line.item.quantity,
                    unit_price=line.item.product.unit_price,
                    discount=line.discount,
                    total=line.total,
                ))
            db.flush()

            self.step = FinalizeStep.LEDGER_UPDATING
            for line in lines:
                record_movement(
                    db,
                    self.ctx,
                    book_id=line.item.product_id,
                    type=MovementType.SAIDA,
                    quantity=line.item.quantity,
                    reason=MovementReason.VENDA,
                    notes=sale_reference(sale.id),
                    sale_id=sale.id,
                    commit=False,
                )

            log_action(
                db,
                self.ctx,
                action="SALE_FINALIZED",
                resource_type="sales",
                resource_id=str(sale.id),
                changes={
                    "total": str(total),
                    "items": len(lines),
                    "payment_method": method.value,
                    "general_discount": str(allocation.allocated),
                },
            )
            db.commit()
        except InsufficientStockError as exc:
            db.rollback()
            failed = self.step
            self._fail()
            logger.warning("Sale rolled back during %s: %s", failed.value, exc)
            raise InsufficientStockError(
                exc.book_id, exc.available, exc.requested, exc.title, step=failed.value
            ) from exc
        except ValueError:
            db.rollback()
            logger.warning("Sale rolled back during %s", self.step.value)
            self._fail()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            failed = self.step
            self._fail()
            logger.exception("Sale finalization failed during %s", failed.value)
            # A concurrent request may have committed the same key first
            existing = self.replay(idempotency_key)
            if existing:
                return existing
            raise SaleFinalizationError(
                failed.value,
                f"Sale could not be completed during {failed.value}; no changes were saved",
            ) from exc

        db.refresh(sale)
        self.step = FinalizeStep.DONE
        logger.info(
            "Sale %s finalized by %s on %s: %s",
            sale.id, self.ctx.responsible, self.ctx.register, format_brl(total),
        )
        return FinalizedSale(
            sale=sale,
            subtotal=to_currency(subtotal),
            discount_total=to_currency(discount_total),
            general_discount=allocation.allocated,
            total=total,
            allocation=allocation,
        )


def finalize_sale(
    db: Session,
    ctx: SessionContext,
    cart: Cart,
    payment_method: PaymentMethod | str = PaymentMethod.CASH,
    general_discount: GeneralDiscount | None = None,
    idempotency_key: str | None = None,
    notes: str | None = None,
) -> FinalizedSale:
    return SaleFinalizer(db, ctx).finalize(
        cart,
        payment_method=payment_method,
        general_discount=general_discount,
        idempotency_key=idempotency_key,
        notes=notes,
    )


def process_sale(db: Session, ctx: SessionContext, data: SaleRequest) -> FinalizedSale:
    """Finalize a sale submitted by a register."""
    finalizer = SaleFinalizer(db, ctx)
    replayed = finalizer.replay(data.idempotency_key)
    if replayed:
        return replayed

    cart = build_cart(db, data.items, data.customer_id)
    general = None
    if data.general_discount is not None:
        general = GeneralDiscount(
            amount=data.general_discount.amount,
            kind=data.general_discount.kind.value,
        )
    return finalizer.finalize(
        cart,
        payment_method=data.payment_method.value,
        general_discount=general,
        idempotency_key=data.idempotency_key,
        notes=data.notes,
    )


def finalized_sale_to_out(result: FinalizedSale) -> FinalizedSaleOut:
    sale = result.sale
    return FinalizedSaleOut(
        sale_id=sale.id,
        created_at=sale.created_at.isoformat(timespec="seconds") if sale.created_at else "",
        items=[sale_item_to_out(item) for item in sale.items],
        subtotal=str(result.subtotal),
        discount_total=str(result.discount_total),
        general_discount=str(to_currency(result.general_discount)),
        total=str(result.total),
        total_display=result.total_display,
        payment_method=sale.payment_method.value,
        replayed=result.replayed,
    )


# ─── Cancellation ───────────────────────────────────────────────────────────


def cancel_sale(
    db: Session,
    ctx: SessionContext,
    sale_id: UUID,
    notes: str | None = None,
) -> Sale:
    """Cancel a sale and put its items back in stock (reason ``estorno``)."""
    ctx.require_active()
    sale = db.query(Sale).filter(Sale.id == sale_id).with_for_update().first()
    if not sale:
        raise SaleNotFoundError(sale_id)
    if sale.payment_status == PaymentStatus.CANCELED:
        raise SaleAlreadyCanceledError(sale_id)

    try:
        for item in sale.items:
            record_movement(
                db,
                ctx,
                book_id=item.book_id,
                type=MovementType.ENTRADA,
                quantity=item.quantity,
                reason=MovementReason.ESTORNO,
                notes=f"Estorno da venda #{sale.id}",
                sale_id=sale.id,
                commit=False,
            )
        sale.payment_status = PaymentStatus.CANCELED
        if notes:
            sale.notes = f"{sale.notes}\nCancelamento: {notes}" if sale.notes else f"Cancelamento: {notes}"

        log_action(
            db,
            ctx,
            action="SALE_CANCELED",
            resource_type="sales",
            resource_id=str(sale.id),
            changes={"items": len(sale.items), "total": str(to_currency(sale.total))},
        )
        db.commit()
    except ValueError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Cancellation of sale %s rolled back", sale_id)
        raise SaleFinalizationError(
            "cancel", f"Sale {sale_id} could not be canceled; no changes were saved"
        ) from exc

    db.refresh(sale)
    logger.info("Sale %s canceled by %s", sale.id, ctx.responsible)
    return sale


def update_sale_payment_status(
    db: Session,
    ctx: SessionContext,
    sale_id: UUID,
    status: PaymentStatus | str,
    notes: str | None = None,
) -> Sale:
    """Move a sale between ``paid`` and ``pending``, or cancel it.

    Cancelling goes through ``cancel_sale`` so the items return to stock.
    A canceled sale is final and cannot change status again.
    """
    target = PaymentStatus(status)
    if target is PaymentStatus.CANCELED:
        return cancel_sale(db, ctx, sale_id, notes=notes)

    ctx.require_active()
    sale = db.query(Sale).filter(Sale.id == sale_id).with_for_update().first()
    if not sale:
        raise SaleNotFoundError(sale_id)
    if sale.payment_status == PaymentStatus.CANCELED:
        raise SaleAlreadyCanceledError(sale_id)

    previous = sale.payment_status
    if previous == target and not notes:
        return sale

    try:
        sale.payment_status = target
        if notes:
            sale.notes = f"{sale.notes}\n{notes}" if sale.notes else notes
        log_action(
            db,
            ctx,
            action="SALE_STATUS_CHANGED",
            resource_type="sales",
            resource_id=str(sale.id),
            changes={"from": previous.value, "to": target.value},
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Status change of sale %s rolled back", sale_id)
        raise SaleFinalizationError(
            "status_update", f"Sale {sale_id} status could not be changed; no changes were saved"
        ) from exc

    db.refresh(sale)
    logger.info("Sale %s payment status %s -> %s by %s", sale.id, previous.value, target.value, ctx.responsible)
    return sale
