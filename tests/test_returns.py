"""Tests for the return engine and effective quantities."""

import threading

import pytest
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from duka.core.config import settings
from duka.core.exceptions import (
    Forbidden,
    InvalidSaleStatus,
    NotFound,
    OverReturn,
    ValidationError,
)
from duka.database import Base
from duka.models.inventory_transactions import InventoryTransaction
from duka.models.products import Product
from duka.models.sale_items import SaleItem
from duka.models.sale_return_items import SaleReturnItem
from duka.models.sale_returns import SaleReturn
from duka.models.users import User
from duka.schemas.sale import SaleCreate
from duka.schemas.sale_return import ReturnItemCreate
from duka.services import ledger
from duka.services import returns as return_service
from duka.services import sales as sale_service
from duka.services.projector import effective_quantities


def make_approved_sale(db, lines, clerk, approver, location="utawala"):
    sale = sale_service.create_sale(
        db,
        SaleCreate(
            customer_name="Otieno Builders",
            location=location,
            payment_method="cash",
            items=[
                {"product_id": product.id, "quantity": quantity, "unit_price": price}
                for product, quantity, price in lines
            ],
        ),
        clerk,
    )
    return sale_service.change_sale_status(db, sale.id, "approved", approver)


def ret(sale_item_id, quantity, unit_price=None):
    return ReturnItemCreate(sale_item_id=sale_item_id, quantity_returned=quantity, unit_price=unit_price)


@pytest.fixture
def approved_sale(db_session, stocked_products, clerk_user, admin_user):
    return make_approved_sale(
        db_session,
        [
            (stocked_products["cement"], 5, "100.00"),
            (stocked_products["nails"], 2, "50.00"),
        ],
        clerk_user,
        admin_user,
    )


def lines_of(sale):
    cement_line, nails_line = sale.items
    return cement_line, nails_line


class TestProcessReturn:
    def test_partial_return(self, db_session, approved_sale, clerk_user):
        cement_line, _ = lines_of(approved_sale)

        sale_return = return_service.process_return(
            db_session, approved_sale.id, [ret(cement_line.id, 2)], "Two bags damp", clerk_user
        )

        assert sale_return.total_refund_amount == Decimal("200.00")
        assert sale_return.notes == "Two bags damp"
        assert len(sale_return.items) == 1
        assert sale_return.items[0].unit_price == Decimal("100.00")
        assert sale_return.items[0].total_price == Decimal("200.00")

        effective = {item.id: item.effective_quantity for item in effective_quantities(db_session, approved_sale.id)}
        assert effective[cement_line.id] == 3

        db_session.refresh(approved_sale)
        assert approved_sale.status == "approved"

    def test_multiple_partial_returns_accumulate(self, db_session, approved_sale, clerk_user):
        cement_line, nails_line = lines_of(approved_sale)

        return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 1)], None, clerk_user)
        return_service.process_return(
            db_session, approved_sale.id, [ret(cement_line.id, 2), ret(nails_line.id, 1)], None, clerk_user
        )

        items = {item.id: item for item in effective_quantities(db_session, approved_sale.id)}
        assert items[cement_line.id].returned_quantity == 3
        assert items[cement_line.id].effective_quantity == 2
        assert items[nails_line.id].effective_quantity == 1
        assert db_session.query(SaleReturn).count() == 2

    def test_over_return_reports_remaining(self, db_session, approved_sale, clerk_user):
        cement_line, _ = lines_of(approved_sale)
        return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 3)], None, clerk_user)

        with pytest.raises(OverReturn) as excinfo:
            return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 3)], None, clerk_user)

        assert excinfo.value.context["sale_item_id"] == cement_line.id
        assert excinfo.value.context["max_returnable"] == 2
        assert excinfo.value.context["requested"] == 3

    def test_failed_return_leaves_nothing_behind(self, db_session, approved_sale, clerk_user):
        cement_line, nails_line = lines_of(approved_sale)

        with pytest.raises(OverReturn):
            return_service.process_return(
                db_session,
                approved_sale.id,
                [ret(cement_line.id, 1), ret(nails_line.id, 5)],
                None,
                clerk_user,
            )

        assert db_session.query(SaleReturn).count() == 0
        assert db_session.query(SaleReturnItem).count() == 0
        assert db_session.get(SaleItem, cement_line.id).returned_quantity == 0

    def test_full_return_marks_sale(self, db_session, approved_sale, clerk_user):
        cement_line, nails_line = lines_of(approved_sale)

        return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 5)], None, clerk_user)
        db_session.refresh(approved_sale)
        assert approved_sale.status == "approved"

        return_service.process_return(db_session, approved_sale.id, [ret(nails_line.id, 2)], None, clerk_user)
        db_session.refresh(approved_sale)
        assert approved_sale.status == "fully_returned"

        assert all(item.effective_quantity == 0 for item in effective_quantities(db_session, approved_sale.id))
        assert approved_sale.id not in [s.id for s, _ in sale_service.list_sales(db_session)]
        assert approved_sale.id in [
            s.id for s, _ in sale_service.list_sales(db_session, include_fully_returned=True)
        ]

    def test_fully_returned_sale_takes_no_more_returns(self, db_session, approved_sale, clerk_user):
        cement_line, nails_line = lines_of(approved_sale)
        return_service.process_return(
            db_session, approved_sale.id, [ret(cement_line.id, 5), ret(nails_line.id, 2)], None, clerk_user
        )

        with pytest.raises(InvalidSaleStatus):
            return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 1)], None, clerk_user)

    def test_pending_sale_cannot_be_returned(self, db_session, stocked_products, clerk_user):
        sale = sale_service.create_sale(
            db_session,
            SaleCreate(
                customer_name="Walk-in",
                location="utawala",
                payment_method="cash",
                items=[{"product_id": stocked_products["cement"].id, "quantity": 1, "unit_price": "100"}],
            ),
            clerk_user,
        )

        with pytest.raises(InvalidSaleStatus):
            return_service.process_return(db_session, sale.id, [ret(sale.items[0].id, 1)], None, clerk_user)

    def test_item_from_another_sale_rejected(
        self, db_session, stocked_products, approved_sale, clerk_user, admin_user
    ):
        other = make_approved_sale(db_session, [(stocked_products["cement"], 1, "100")], clerk_user, admin_user)

        with pytest.raises(ValidationError) as excinfo:
            return_service.process_return(
                db_session, approved_sale.id, [ret(other.items[0].id, 1)], None, clerk_user
            )

        assert excinfo.value.context["sale_item_id"] == other.items[0].id

    def test_unit_price_must_match_sale(self, db_session, approved_sale, clerk_user):
        cement_line, _ = lines_of(approved_sale)

        with pytest.raises(ValidationError):
            return_service.process_return(
                db_session, approved_sale.id, [ret(cement_line.id, 1, "150.00")], None, clerk_user
            )

        sale_return = return_service.process_return(
            db_session, approved_sale.id, [ret(cement_line.id, 1, "100")], None, clerk_user
        )
        assert sale_return.total_refund_amount == Decimal("100.00")

    @pytest.mark.parametrize("items", [
        [],
        [ReturnItemCreate(sale_item_id=1, quantity_returned=0)],
        [ReturnItemCreate(sale_item_id=1, quantity_returned=-2)],
        [
            ReturnItemCreate(sale_item_id=1, quantity_returned=1),
            ReturnItemCreate(sale_item_id=1, quantity_returned=1),
        ],
    ])
    def test_malformed_requests(self, db_session, approved_sale, clerk_user, items):
        with pytest.raises(ValidationError):
            return_service.process_return(db_session, approved_sale.id, items, None, clerk_user)

    def test_unknown_sale(self, db_session, clerk_user):
        with pytest.raises(NotFound):
            return_service.process_return(db_session, 404, [ret(1, 1)], None, clerk_user)

    def test_accountant_cannot_process_returns(self, db_session, approved_sale, accountant_user):
        cement_line, _ = lines_of(approved_sale)
        with pytest.raises(Forbidden):
            return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 1)], None, accountant_user)

    def test_full_refund_equals_sale_total(self, db_session, stocked_products, clerk_user, admin_user):
        sale = make_approved_sale(
            db_session,
            [(stocked_products["cement"], 3, "0.30"), (stocked_products["nails"], 3, "33.33")],
            clerk_user,
            admin_user,
        )

        sale_return = return_service.process_return(
            db_session,
            sale.id,
            [ret(item.id, item.quantity) for item in sale.items],
            None,
            clerk_user,
        )

        assert sale_return.total_refund_amount == sale.total_amount == Decimal("100.89")


class TestRestock:
    def test_returns_do_not_restock_by_default(self, db_session, stocked_products, approved_sale, clerk_user):
        cement_line, _ = lines_of(approved_sale)
        before = ledger.get_stock(db_session, stocked_products["cement"].id, "utawala")

        return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 2)], None, clerk_user)

        assert ledger.get_stock(db_session, stocked_products["cement"].id, "utawala") == before

    def test_restock_when_enabled(self, db_session, stocked_products, approved_sale, clerk_user, monkeypatch):
        monkeypatch.setattr(settings, "RESTOCK_ON_RETURN", True)
        cement_line, _ = lines_of(approved_sale)
        before = ledger.get_stock(db_session, stocked_products["cement"].id, "utawala")

        sale_return = return_service.process_return(
            db_session, approved_sale.id, [ret(cement_line.id, 2)], None, clerk_user
        )

        assert ledger.get_stock(db_session, stocked_products["cement"].id, "utawala") == before + 2
        txn = (
            db_session.query(InventoryTransaction)
            .filter(InventoryTransaction.reference == f"return:{sale_return.id}")
            .one()
        )
        assert txn.transaction_type == "return"
        assert txn.to_location == "utawala"


class TestEffectiveQuantities:
    def test_repeatable_without_new_returns(self, db_session, approved_sale, clerk_user):
        cement_line, _ = lines_of(approved_sale)
        return_service.process_return(db_session, approved_sale.id, [ret(cement_line.id, 2)], None, clerk_user)

        first = effective_quantities(db_session, approved_sale.id)
        second = effective_quantities(db_session, approved_sale.id)

        assert first == second

    def test_bounds_hold(self, db_session, approved_sale, clerk_user):
        cement_line, nails_line = lines_of(approved_sale)
        return_service.process_return(db_session, approved_sale.id, [ret(nails_line.id, 2)], None, clerk_user)

        for item in effective_quantities(db_session, approved_sale.id):
            assert 0 <= item.effective_quantity <= item.quantity
            assert item.returned_quantity == db_session.get(SaleItem, item.id).returned_quantity

    def test_product_name_included(self, db_session, stocked_products, approved_sale):
        names = [item.product_name for item in effective_quantities(db_session, approved_sale.id)]
        assert names == [stocked_products["cement"].name, stocked_products["nails"].name]


class TestConcurrentReturns:
    """Two clerks returning the same line at the same moment."""

    def test_only_one_return_wins(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "DB_RETRY_BACKOFF_SECONDS", 0.2)

        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 10},
        )
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = Session()
        admin = User(email="admin@example.com", full_name="Admin", role="admin")
        clerk = User(email="clerk@example.com", full_name="Clerk", role="clerk")
        product = Product(name="Cement 50kg")
        setup.add_all([admin, clerk, product])
        setup.commit()
        ledger.record_adjustment(setup, product.id, "utawala", 20, admin.id)
        sale = make_approved_sale(setup, [(product, 5, "100")], clerk, admin)
        sale_id, item_id, clerk_id = sale.id, sale.items[0].id, clerk.id
        setup.close()

        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def worker():
            session = Session()
            try:
                actor = session.get(User, clerk_id)
                barrier.wait()
                try:
                    return_service.process_return(session, sale_id, [ret(item_id, 3)], None, actor)
                    result = "ok"
                except OverReturn:
                    result = "over_return"
                with lock:
                    outcomes.append(result)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["ok", "over_return"]

        check = Session()
        try:
            assert check.get(SaleItem, item_id).returned_quantity == 3
            assert check.query(SaleReturn).count() == 1
            effective = effective_quantities(check, sale_id)
            assert effective[0].effective_quantity == 2
        finally:
            check.close()
            engine.dispose()
