"""Reference data: accounts, products and warehouses."""

from decimal import Decimal
from uuid import UUID

from books_kernel.domain.values import ZERO, AccountType, to_decimal
from books_kernel.exceptions import AccountNotFoundError, ValidationError
from books_kernel.logging_config import get_logger
from books_kernel.models import Account, Product, Warehouse
from books_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService):
    def create_account(
        self,
        name: str,
        account_type: AccountType,
        opening_balance: Decimal = ZERO,
        *,
        code: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        notes: str | None = None,
        is_active: bool = True,
    ) -> Account:
        if not name or not name.strip():
            raise ValidationError("Account name is required", field="name")
        try:
            account_type = AccountType(account_type)
        except ValueError:
            raise ValidationError(
                f"Unknown account type {account_type!r}", field="account_type"
            ) from None
        opening = to_decimal(opening_balance)

        account = self.uow.accounts.add(
            Account(
                name=name.strip(),
                code=code,
                account_type=account_type.value,
                opening_balance=opening,
                current_balance=opening,
                is_active=is_active,
                phone=phone,
                email=email,
                notes=notes,
            )
        )
        logger.info(
            "account_created",
            extra={
                "account_id": account.id,
                "account_type": account_type.value,
                "opening_balance": opening,
            },
        )
        return account

    def set_account_active(self, account_id: UUID, is_active: bool) -> Account:
        account = self.uow.accounts.get_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        account.is_active = is_active
        self.uow.flush()
        return account

    def create_product(
        self,
        code: str,
        name: str,
        *,
        unit: str = "unit",
        cost_price: Decimal = ZERO,
        sell_price: Decimal = ZERO,
        min_stock: Decimal = ZERO,
    ) -> Product:
        if not code or not code.strip():
            raise ValidationError("Product code is required", field="code")
        if not name or not name.strip():
            raise ValidationError("Product name is required", field="name")
        if self.uow.catalog.get_product_by_code(code.strip()) is not None:
            raise ValidationError(f"Product code {code} already exists", field="code")
        if to_decimal(cost_price) < ZERO or to_decimal(sell_price) < ZERO:
            raise ValidationError("Prices must not be negative", field="price")

        product = self.uow.catalog.add_product(
            Product(
                code=code.strip(),
                name=name.strip(),
                unit=unit,
                cost_price=to_decimal(cost_price),
                sell_price=to_decimal(sell_price),
                min_stock=to_decimal(min_stock),
            )
        )
        logger.info("product_created", extra={"product_id": product.id, "code": product.code})
        return product

    def create_warehouse(
        self,
        name: str,
        *,
        location: str | None = None,
        is_default: bool = False,
    ) -> Warehouse:
        if not name or not name.strip():
            raise ValidationError("Warehouse name is required", field="name")
        warehouse = self.uow.catalog.add_warehouse(
            Warehouse(name=name.strip(), location=location, is_default=is_default)
        )
        logger.info("warehouse_created", extra={"warehouse_id": warehouse.id})
        return warehouse
