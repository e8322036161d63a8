import pytest

from bazpos.services import ledger_store
from bazpos.services.defect_service import list_defects, record_defect
from bazpos.services.ledger_store import DEFECTS, PRODUCTS, SHIPMENTS
from bazpos.services.stock_service import get_variant_quantity
from bazpos.validation import InsufficientStockError, ProductNotFoundError, ValidationError


def _quantity(product_id, color, size):
    return get_variant_quantity(ledger_store.get_document(PRODUCTS, product_id), color, size)


def _record(product_id="P1", quantity=3, color="Red", size="M", purchase_price=20, **kwargs):
    return record_defect(
        product_id, color, size, quantity, "torn seam", purchase_price, "SUP1", "2024-03-05", **kwargs
    )


class TestRecordDefect:
    def test_second_defect_exceeding_stock_fails(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 5}})

        _record(quantity=3)
        assert _quantity("P1", "Red", "M") == 2

        with pytest.raises(InsufficientStockError):
            _record(quantity=3)

        assert _quantity("P1", "Red", "M") == 2
        assert len(ledger_store.list_documents(DEFECTS)) == 1

    def test_defect_record_contents(self, db_session, make_product):
        make_product("P1", name="Linen Shirt", quantities={"Red": {"M": 5}})

        defect_id = _record(quantity=2, purchase_price="19.5")

        defect = ledger_store.get_document(DEFECTS, defect_id)
        assert defect["productName"] == "Linen Shirt"
        assert defect["quantity"] == 2
        assert defect["purchasePrice"] == 19.5
        assert defect["supplierId"] == "SUP1"
        assert defect["shipmentDate"] == "2024-03-05"
        assert defect["shipmentId"] is None
        assert defect["createdAt"].endswith("Z")

    def test_missing_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            _record(product_id="ghost", quantity=1)
        assert ledger_store.list_documents(DEFECTS) == []

    def test_missing_variant_counts_as_zero(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 5}})

        with pytest.raises(InsufficientStockError):
            _record(quantity=1, color="Blue")

    @pytest.mark.parametrize("quantity", [0, -1, "1.5", None])
    def test_quantity_must_be_positive_integer(self, db_session, make_product, quantity):
        make_product("P1", quantities={"Red": {"M": 5}})

        with pytest.raises(ValidationError):
            _record(quantity=quantity)
        assert _quantity("P1", "Red", "M") == 5

    def test_explicit_shipment_must_match_supplier(self, db_session, make_product, seed):
        make_product("P1", quantities={"Red": {"M": 5}})
        seed(SHIPMENTS, {"id": "SH1", "supplierId": "OTHER", "date": "2024-03-05"})

        with pytest.raises(ValidationError):
            _record(quantity=1, shipment_id="SH1")
        with pytest.raises(ValidationError):
            _record(quantity=1, shipment_id="SH-missing")
        assert _quantity("P1", "Red", "M") == 5

    def test_explicit_shipment_is_stored(self, db_session, make_product, seed):
        make_product("P1", quantities={"Red": {"M": 5}})
        seed(SHIPMENTS, {"id": "SH1", "supplierId": "SUP1", "date": "2024-03-05"})

        defect_id = _record(quantity=1, shipment_id="SH1")

        assert ledger_store.get_document(DEFECTS, defect_id)["shipmentId"] == "SH1"

    def test_duplicate_defect_id_rejected(self, db_session, make_product):
        make_product("P1", quantities={"Red": {"M": 5}})
        _record(quantity=1, defect_id="DF1")

        with pytest.raises(ValidationError):
            _record(quantity=1, defect_id="DF1")
        assert _quantity("P1", "Red", "M") == 4


class TestListDefects:
    def test_filters(self, db_session, seed):
        seed(DEFECTS, {"id": "D1", "supplierId": "A", "shipmentDate": "2024-03-05", "shipmentId": "SH1"})
        seed(DEFECTS, {"id": "D2", "supplierId": "A", "shipmentDate": "2024-03-06"})
        seed(DEFECTS, {"id": "D3", "supplierId": "B", "shipmentDate": "2024-03-05"})

        assert [d["id"] for d in list_defects(supplier_id="A")] == ["D1", "D2"]
        assert [d["id"] for d in list_defects(shipment_date="2024-03-05")] == ["D1", "D3"]
        assert [d["id"] for d in list_defects(shipment_id="SH1")] == ["D1"]
