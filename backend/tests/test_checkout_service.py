import unittest
from decimal import Decimal
from unittest import mock

from flask import Flask
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from tillkit.extensions import db
from tillkit.models import Shop, Product, Transaction, TransactionItem
from tillkit.services import checkout_service
from tillkit.services.cart_service import Cart
from tillkit.services.concurrency import run_with_retry
from tillkit.services.checkout_service import (
    MissingActorOrShop,
    PersistenceFailure,
    STAGE_HEADER,
    STAGE_ITEMS,
    STAGE_STOCK,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_SKIPPED,
    TransactionNotFound,
    commit_sale,
    compute_totals,
)
from tillkit.validation import ValidationError


class ComputeTotalsTests(unittest.TestCase):
    def test_five_percent_of_one_thousand(self):
        totals = compute_totals(100000, Decimal("0.05"))
        self.assertEqual(totals.tax_amount_cents, 5000)
        self.assertEqual(totals.total_amount_cents, 105000)
        self.assertEqual(totals.discount_amount_cents, 0)

    def test_tax_rounds_half_up_to_cents(self):
        # 0.10 at 5% = 0.005 -> 0.01
        self.assertEqual(compute_totals(10, Decimal("0.05")).tax_amount_cents, 1)
        # 0.09 at 5% = 0.0045 -> 0.00
        self.assertEqual(compute_totals(9, Decimal("0.05")).tax_amount_cents, 0)

    def test_zero_rate(self):
        totals = compute_totals(1234, Decimal(0))
        self.assertEqual(totals.total_amount_cents, 1234)


class CommitSaleTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from tillkit import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(TransactionItem).delete()
        db.session.query(Transaction).delete()
        db.session.query(Product).delete()
        db.session.query(Shop).delete()
        db.session.commit()

        self.shop = Shop(name="Corner Store", tax_rate_bps=500)
        db.session.add(self.shop)
        db.session.flush()

        self.widget = Product(shop_id=self.shop.id, name="Widget", sku="WID", price_cents=10000, stock_quantity=10)
        self.gadget = Product(shop_id=self.shop.id, name="Gadget", sku="GAD", price_cents=2550, stock_quantity=1)
        db.session.add_all([self.widget, self.gadget])
        db.session.commit()

    def test_widget_sale_end_to_end(self):
        cart = Cart()
        cart.add(self.widget)
        cart.add(self.widget)

        outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.totals.subtotal_cents, 20000)
        self.assertEqual(outcome.totals.tax_amount_cents, 1000)
        self.assertEqual(outcome.totals.total_amount_cents, 21000)

        txn = db.session.get(Transaction, outcome.transaction_id)
        self.assertEqual(txn.total_amount_cents, 21000)
        self.assertEqual(txn.status, "completed")
        self.assertFalse(txn.is_direct_billing)

        items = checkout_service.list_transaction_items(txn.id)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].product_name, "Widget")
        self.assertEqual(items[0].quantity, 2)
        self.assertEqual(items[0].unit_price_cents, 10000)
        self.assertEqual(items[0].total_price_cents, 20000)

        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 8)
        self.assertTrue(cart.is_empty)

    def test_direct_billing_creates_no_items_and_keeps_stock(self):
        cart = Cart()
        cart.add(self.widget)

        outcome = commit_sale(
            cart=cart,
            shop=self.shop,
            cashier_id=1,
            payment_method="upi",
            direct_amount_cents=100000,
        )

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.totals.tax_amount_cents, 5000)
        self.assertEqual(outcome.totals.total_amount_cents, 105000)
        self.assertEqual(outcome.step(STAGE_ITEMS).status, STEP_SKIPPED)
        self.assertEqual(outcome.step(STAGE_STOCK).status, STEP_SKIPPED)

        txn = db.session.get(Transaction, outcome.transaction_id)
        self.assertTrue(txn.is_direct_billing)
        self.assertEqual(checkout_service.list_transaction_items(txn.id), [])
        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 10)
        self.assertTrue(cart.is_empty)

    def test_stock_never_goes_negative(self):
        cart = Cart()
        cart.add(self.gadget)
        cart.update_quantity(str(self.gadget.id), 3)

        outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="card")

        self.assertTrue(outcome.ok)
        self.assertEqual(db.session.get(Product, self.gadget.id).stock_quantity, 0)

    def test_input_validation(self):
        cart = Cart()
        cart.add(self.widget)

        with self.assertRaises(MissingActorOrShop):
            commit_sale(cart=cart, shop=self.shop, cashier_id=None, payment_method="cash")
        with self.assertRaises(MissingActorOrShop):
            commit_sale(cart=cart, shop=None, cashier_id=1, payment_method="cash")
        with self.assertRaises(ValidationError):
            commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="barter")
        with self.assertRaises(ValidationError):
            commit_sale(cart=Cart(), shop=self.shop, cashier_id=1, payment_method="cash")
        with self.assertRaises(ValidationError):
            commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash", direct_amount_cents=0)

        self.assertEqual(db.session.query(Transaction).count(), 0)
        self.assertEqual(len(cart), 1)

    def test_header_failure_records_nothing_and_keeps_cart(self):
        cart = Cart()
        cart.add(self.widget)
        locked = OperationalError("INSERT INTO transactions", {}, Exception("database is locked"))

        with mock.patch.object(checkout_service, "run_with_retry", side_effect=locked):
            outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        self.assertFalse(outcome.durable)
        self.assertEqual(outcome.step(STAGE_HEADER).status, STEP_FAILED)
        self.assertEqual(outcome.step(STAGE_ITEMS).status, STEP_SKIPPED)
        self.assertEqual(outcome.step(STAGE_STOCK).status, STEP_SKIPPED)
        self.assertIsNone(outcome.transaction_id)

        self.assertEqual(db.session.query(Transaction).count(), 0)
        self.assertEqual(db.session.query(TransactionItem).count(), 0)
        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 10)
        self.assertEqual(len(cart), 1)

        with self.assertRaises(PersistenceFailure) as ctx:
            outcome.raise_for_failure()
        self.assertFalse(ctx.exception.sale_recorded)

    def test_items_failure_keeps_header_and_skips_stock(self):
        cart = Cart()
        cart.add(self.widget)

        with mock.patch.object(db.session, "add_all", side_effect=SQLAlchemyError("disk I/O error")):
            outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        self.assertTrue(outcome.durable)
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.failed_step.name, STAGE_ITEMS)
        self.assertEqual(outcome.step(STAGE_STOCK).status, STEP_SKIPPED)

        self.assertEqual(db.session.query(Transaction).count(), 1)
        self.assertEqual(db.session.query(TransactionItem).count(), 0)
        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 10)
        # Cart stays so the operator can see what was sold
        self.assertEqual(len(cart), 1)

        failure = outcome.failure
        self.assertEqual(failure.stage, STAGE_ITEMS)
        self.assertTrue(failure.sale_recorded)

    def test_stock_failure_on_one_line_still_decrements_others(self):
        cart = Cart()
        cart.add(self.widget)
        cart.add(self.gadget)

        # Product deleted from the catalog after it was put in the cart
        db.session.delete(db.session.get(Product, self.gadget.id))
        db.session.commit()

        outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        self.assertTrue(outcome.durable)
        self.assertEqual(outcome.step(STAGE_HEADER).status, STEP_COMPLETED)
        self.assertEqual(outcome.step(STAGE_ITEMS).status, STEP_COMPLETED)
        stock = outcome.step(STAGE_STOCK)
        self.assertEqual(stock.status, STEP_FAILED)
        self.assertEqual(stock.details["decremented"], [self.widget.id])
        self.assertEqual(len(stock.details["failed"]), 1)

        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 9)
        self.assertEqual(db.session.query(TransactionItem).count(), 2)

    def test_items_commit_retries_a_locked_database(self):
        cart = Cart()
        cart.add(self.widget)
        real_commit = db.session.commit
        commits = []

        def locked_once(*args, **kwargs):
            commits.append(1)
            # header is commit 1, the first items commit hits the lock
            if len(commits) == 2:
                raise OperationalError("INSERT INTO transaction_items", {}, Exception("database is locked"))
            return real_commit()

        with mock.patch.object(db.session, "commit", side_effect=locked_once):
            outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        self.assertTrue(outcome.ok)
        self.assertEqual(len(commits), 4)
        self.assertEqual(db.session.query(TransactionItem).count(), 1)
        self.assertEqual(db.session.get(Product, self.widget.id).stock_quantity, 9)

    def test_retry_backs_off_then_gives_up(self):
        locked = OperationalError("UPDATE products", {}, Exception("database is locked"))
        write = mock.Mock(side_effect=locked)
        delays = []

        with self.assertRaises(OperationalError):
            run_with_retry(write, label="stock update", attempts=3, backoff_base=0.1, sleep=delays.append)

        self.assertEqual(write.call_count, 3)
        self.assertEqual(delays, [0.1, 0.2])

    def test_retry_leaves_other_errors_alone(self):
        write = mock.Mock(side_effect=ValueError("bad row"))
        delays = []

        with self.assertRaises(ValueError):
            run_with_retry(write, sleep=delays.append)

        self.assertEqual(write.call_count, 1)
        self.assertEqual(delays, [])

    def test_items_never_exist_without_header(self):
        cart = Cart()
        cart.add(self.widget)
        commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        header_ids = {t.id for t in db.session.query(Transaction).all()}
        for item in db.session.query(TransactionItem).all():
            self.assertIn(item.transaction_id, header_ids)

    def test_status_correction(self):
        cart = Cart()
        cart.add(self.widget)
        outcome = commit_sale(cart=cart, shop=self.shop, cashier_id=1, payment_method="cash")

        txn = checkout_service.correct_transaction_status(outcome.transaction_id, "cancelled")
        self.assertEqual(txn.status, "cancelled")
        self.assertEqual(txn.total_amount_cents, 10500)

        with self.assertRaises(ValidationError):
            checkout_service.correct_transaction_status(outcome.transaction_id, "refunded")
        with self.assertRaises(TransactionNotFound):
            checkout_service.correct_transaction_status(999999, "failed")


if __name__ == "__main__":
    unittest.main()
