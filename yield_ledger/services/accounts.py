"""Account registration and the product catalog feed"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.exceptions import ValidationError
from yield_ledger.domain.models import to_money
from yield_ledger.infrastructure.database.models import Account, Product
from yield_ledger.infrastructure.database.repositories import AccountRepository, ProductRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork, run_atomic
from yield_ledger.services.account_store import parse_amount
from yield_ledger.services.overrides import record_override


def register_account(
    session_factory: sessionmaker,
    phone: str,
    inviter_id: Optional[str] = None,
    account_id: Optional[str] = None,
) -> Account:
    """
    Create an account and freeze its referral chain.

    The chain is the inviter followed by the inviter's own first three
    ancestors, so a new account sits one level below its inviter at every
    depth.

    Raises:
        ValidationError: empty or already registered phone
        NotFound: inviter_id does not exist
    """
    phone = (phone or "").strip()
    if not phone:
        raise ValidationError("Phone number is required")

    def unit(uow: UnitOfWork) -> Account:
        accounts = AccountRepository(uow.session)
        if accounts.get_by_phone(phone) is not None:
            raise ValidationError(f"Phone {phone} is already registered", phone=phone)

        chain = [None, None, None, None]
        if inviter_id:
            inviter = accounts.get(inviter_id)
            chain = [inviter.id, inviter.inviter_a, inviter.inviter_b, inviter.inviter_c]

        account = Account(
            phone=phone,
            spendable_balance=Decimal("0"),
            invite_wallet=Decimal("0"),
            task_wallet=Decimal("0"),
            vip_level=0,
            is_valid_member=False,
            inviter_a=chain[0],
            inviter_b=chain[1],
            inviter_c=chain[2],
            inviter_d=chain[3],
        )
        if account_id:
            account.id = account_id
        return accounts.add(account)

    try:
        account = run_atomic(session_factory, unit, name="register")
    except IntegrityError:
        # Lost a race on the unique phone (or a reused id)
        raise ValidationError(f"Account for phone {phone} already exists", phone=phone)

    logging.info(
        "Account registered",
        extra={"account_id": account.id, "step": "register", "inviter_id": inviter_id},
    )
    return account


def get_account(session_factory: sessionmaker, account_id: str) -> Account:
    with session_factory() as db:
        return AccountRepository(db).get(account_id)


def upsert_product(
    session_factory: sessionmaker,
    product_id: str,
    name: str,
    price: Decimal,
    daily_income: Decimal,
    contract_period: int,
    purchase_limit: int = 1,
    is_active: bool = True,
    actor: Optional[str] = None,
) -> Product:
    """
    Catalog feed entry point. Existing contracts keep the terms they were bought under.

    When an admin actor is given the change is written to the override trail.
    """
    product_id = (product_id or "").strip()
    if not product_id:
        raise ValidationError("Product id is required")
    price = parse_amount(price)
    daily_income = parse_amount(daily_income)
    if price <= 0:
        raise ValidationError(f"Price must be positive, got {price}", product_id=product_id)
    if daily_income < 0:
        raise ValidationError(f"Daily income cannot be negative, got {daily_income}", product_id=product_id)
    if contract_period <= 0:
        raise ValidationError(f"Contract period must be positive, got {contract_period}", product_id=product_id)
    if purchase_limit <= 0:
        raise ValidationError(f"Purchase limit must be positive, got {purchase_limit}", product_id=product_id)

    def unit(uow: UnitOfWork) -> Product:
        product = ProductRepository(uow.session).upsert(
            Product(
                id=product_id,
                name=name or product_id,
                price=to_money(price),
                daily_income=to_money(daily_income),
                contract_period=contract_period,
                purchase_limit=purchase_limit,
                is_active=is_active,
            )
        )
        if actor:
            record_override(
                uow,
                actor,
                "upsert_product",
                "product",
                product_id,
                "catalog update",
                {
                    "price": str(product.price),
                    "daily_income": str(product.daily_income),
                    "contract_period": contract_period,
                    "purchase_limit": purchase_limit,
                    "is_active": is_active,
                },
            )
        return product

    return run_atomic(session_factory, unit, name="upsert_product")
