import pytest

from bazpos.services import ledger_store
from bazpos.services.ledger_store import PRODUCTS
from bazpos.services.stock_service import (
    VariantAdjustment,
    adjust_variant_quantity,
    apply_adjustments,
    get_product_stock,
    get_variant_quantity,
)
from bazpos.validation import InsufficientStockError, ProductNotFoundError, ValidationError


def _quantity(product_id, color, size):
    return get_variant_quantity(ledger_store.get_document(PRODUCTS, product_id), color, size)


class TestVariantQuantity:
    def test_missing_variant_reads_zero(self):
        assert get_variant_quantity({"colors": {}}, "Red", "M") == 0
        assert get_variant_quantity({}, "Red", "M") == 0


class TestAdjustments:
    def test_increase_creates_missing_variant(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 1}})

        apply_adjustments([VariantAdjustment("P1", "Blue", "S", 4)])

        assert _quantity("P1", "Blue", "S") == 4
        assert _quantity("P1", "Red", "M") == 1

    def test_decrement_to_zero_allowed(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 3}})

        result = apply_adjustments([VariantAdjustment("P1", "Red", "M", -3)])

        assert result[("P1", "Red", "M")] == 0
        assert _quantity("P1", "Red", "M") == 0

    def test_negative_result_rejected_and_stock_unchanged(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 2}})

        with pytest.raises(InsufficientStockError) as excinfo:
            apply_adjustments([VariantAdjustment("P1", "Red", "M", -3)])

        assert excinfo.value.available == 2
        assert excinfo.value.requested == 3
        assert _quantity("P1", "Red", "M") == 2

    def test_batch_is_all_or_nothing(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 1}})
        make_product("P2", quantities={"Black": {"L": 2}})

        with pytest.raises(InsufficientStockError):
            apply_adjustments([
                VariantAdjustment("P1", "Red", "M", 5),
                VariantAdjustment("P2", "Black", "L", -10),
            ])

        assert _quantity("P1", "Red", "M") == 1
        assert _quantity("P2", "Black", "L") == 2

    def test_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            apply_adjustments([VariantAdjustment("ghost", "Red", "M", 1)])

    def test_empty_batch_rejected(self, db_session):
        with pytest.raises(ValidationError):
            apply_adjustments([])

    def test_adjust_does_not_commit_on_its_own(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 1}})

        adjust_variant_quantity(VariantAdjustment("P1", "Red", "M", 2))
        db_session.rollback()

        assert _quantity("P1", "Red", "M") == 1

    def test_build_validates_delta(self):
        with pytest.raises(ValidationError):
            VariantAdjustment.build("P1", "Red", "M", "1.5")
        with pytest.raises(ValidationError):
            VariantAdjustment.build("P1", "", "M", 1)


class TestProductStock:
    def test_flattened_variants_and_total(self, db_session, make_product):
        make_product("P1", name="Tee", quantities={"Red": {"M": 2, "L": 1}, "Blue": {"S": 4}})

        stock = get_product_stock("P1")

        assert stock["name"] == "Tee"
        assert stock["totalQuantity"] == 7
        assert {(v["color"], v["size"]): v["quantity"] for v in stock["variants"]} == {
            ("Red", "M"): 2,
            ("Red", "L"): 1,
            ("Blue", "S"): 4,
        }
