"""Tests for the inquiry draft state machine."""

import asyncio

import pytest

from src.inquiry.errors import (
    CompletenessError,
    InquiryError,
    InvalidStepError,
    InvalidUpdateError,
    ProductNotFoundError,
    RecordNotFoundError,
)
from src.inquiry.models import CompanyInfo, InquiryStatus, InquiryStep
from src.inquiry.state_machine import InquiryStateMachine

from conftest import COMPLETE_COMPANY


class TestProducts:
    """Test product list mutations."""

    def test_add_product_creates_draft(self, machine):
        """Test that the first product starts the draft."""
        assert machine.is_empty()

        product = machine.add_product({"model": "STM32F401RET6", "quantity": 5})

        assert not machine.is_empty()
        assert [p.id for p in machine.products] == [product.id]

    def test_whole_number_float_quantity_kept(self, machine):
        """Test that a spreadsheet-style 5.0 is not reset to 1."""
        product = machine.add_product({"model": "X", "quantity": 5.0})
        imported = machine.import_products([{"model": "Y", "quantity": "12.0"}])

        assert product.quantity == 5
        assert imported[0].quantity == 12

    def test_remove_product(self, machine):
        first = machine.add_product({"model": "A1"})
        second = machine.add_product({"model": "A2"})

        machine.remove_product(first.id)

        assert [p.id for p in machine.products] == [second.id]

    def test_remove_unknown_product(self, machine):
        with pytest.raises(ProductNotFoundError):
            machine.remove_product("nope")

    def test_update_product(self, machine):
        """Test merging a partial update."""
        product = machine.add_product({"model": "LM317", "quantity": 2})

        updated = machine.update_product(product.id, {"quantity": 50, "target_price": 0.4})

        assert updated.quantity == 50
        assert updated.model == "LM317"
        assert machine.products[0].target_price == pytest.approx(0.4)

    def test_update_product_rejects_invalid_quantity(self, machine):
        """Test that quantity stays >= 1."""
        product = machine.add_product({"model": "LM317", "quantity": 2})

        with pytest.raises(InvalidUpdateError):
            machine.update_product(product.id, {"quantity": 0})
        assert machine.products[0].quantity == 2

    def test_update_product_rejects_unknown_field(self, machine):
        product = machine.add_product({"model": "LM317"})
        with pytest.raises(InvalidUpdateError):
            machine.update_product(product.id, {"colour": "blue"})

    def test_update_product_rejects_id_change(self, machine):
        product = machine.add_product({"model": "LM317"})
        with pytest.raises(InvalidUpdateError):
            machine.update_product(product.id, {"id": "other"})

    def test_update_unknown_product(self, machine):
        with pytest.raises(ProductNotFoundError):
            machine.update_product("nope", {"quantity": 3})

    def test_import_products_appends(self, machine):
        """Test that imports never replace existing products."""
        machine.add_product({"model": "A1"})

        machine.import_products([{"model": "B1"}, {"model": "B2", "quantity": -1}])

        products = machine.products
        assert [p.model for p in products] == ["A1", "B1", "B2"]
        assert products[2].quantity == 1


class TestImports:
    """Test BOM imports merged into the draft."""

    def test_import_text_merges_accepted_rows(self, machine):
        """Test a partial import keeps good rows and reports bad ones."""
        machine.add_product({"model": "EXISTING"})

        result = machine.import_text("part_number,quantity\nA1,2\n,3\nA2,zero")

        assert result.success is False
        assert result.summary() == {"accepted": 2, "errors": 1, "warnings": 1}
        assert [p.model for p in machine.products] == ["EXISTING", "A1", "A2"]

    def test_import_text_file_error_adds_nothing(self, machine):
        result = machine.import_text("part_number\nA1")

        assert result.file_error is True
        assert machine.products == []

    def test_import_file(self, machine, tmp_path):
        """Test importing from disk."""
        path = tmp_path / "bom.csv"
        path.write_text("part_number,quantity\nLM358,4\nNE555,6\n", encoding="utf-8")

        result = asyncio.run(machine.import_file(path))

        assert result.success is True
        assert [p.quantity for p in machine.products] == [4, 6]

    def test_concurrent_imports_do_not_interleave(self, machine, tmp_path):
        """Test that two imports on one draft are merged one after the other."""
        first = tmp_path / "first.csv"
        second = tmp_path / "second.csv"
        first.write_text("part_number,quantity\n" + "\n".join(f"F{i},1" for i in range(20)))
        second.write_text("part_number,quantity\n" + "\n".join(f"S{i},1" for i in range(20)))

        async def run_both():
            return await asyncio.gather(machine.import_file(first), machine.import_file(second))

        asyncio.run(run_both())

        models = [p.model for p in machine.products]
        assert models == [f"F{i}" for i in range(20)] + [f"S{i}" for i in range(20)]


class TestCompanyAndProject:
    """Test company/project updates and the template side effect."""

    def test_partial_company_update_merges(self, machine):
        machine.update_company_info({"company_name": "Acme"})
        machine.update_company_info({"email": "a@acme.example"})

        company = machine.company_info()
        assert company.company_name == "Acme"
        assert company.email == "a@acme.example"
        assert not company.is_complete()

    def test_complete_company_becomes_template(self, machine, repository):
        """Test that reaching completeness stores a company template."""
        machine.update_company_info({"company_name": "Acme", "contact_person": "Jordan"})
        assert repository.list_company_templates() == []

        machine.update_company_info({"email": "jordan@acme.example", "phone": "555"})

        templates = repository.list_company_templates()
        assert len(templates) == 1
        assert templates[0].company_name == "Acme"
        assert templates[0].phone == "555"

    def test_optional_edits_do_not_evict_other_templates(self, machine, repository):
        """Test that editing a complete company refreshes its template in place."""
        for i in range(4):
            repository.add_company_template(
                CompanyInfo(company_name=f"Other {i}", email=f"buyer{i}@other.example")
            )
        machine.update_company_info(COMPLETE_COMPANY)

        for i in range(5):
            machine.update_company_info({"address": f"{i} Harbour Road"})

        templates = repository.list_company_templates()
        assert [t.company_name for t in templates] == [
            "Acme Electronics",
            "Other 3",
            "Other 2",
            "Other 1",
            "Other 0",
        ]
        assert templates[0].address == "4 Harbour Road"

    def test_unknown_company_field(self, machine):
        with pytest.raises(InvalidUpdateError):
            machine.update_company_info({"fax": "123"})

    def test_invalid_company_size(self, machine):
        with pytest.raises(InvalidUpdateError):
            machine.update_company_info({"company_size": "huge"})
        assert machine.company_info().company_size is None

    def test_project_info_update(self, machine):
        machine.update_project_info({"project_name": "Drone controller"})
        machine.update_project_info({"expected_volume": 5000})

        project = machine.project_info()
        assert project.project_name == "Drone controller"
        assert project.expected_volume == 5000

    def test_apply_company_template(self, machine, repository):
        """Test filling company info from the newest template."""
        machine.update_company_info(COMPLETE_COMPANY)
        machine.clear_draft()

        company = machine.apply_company_template()

        assert company.company_name == COMPLETE_COMPANY["company_name"]
        assert machine.company_info().is_complete()

    def test_apply_missing_template(self, machine):
        with pytest.raises(RecordNotFoundError):
            machine.apply_company_template(3)


class TestSteps:
    """Test step navigation and the submit gate."""

    def test_free_navigation(self, machine):
        """Test that any non-submit step can be entered in any order."""
        machine.set_step("review")
        machine.set_step(InquiryStep.COMPANY)
        machine.set_step("products")

        history = machine.snapshot().step_history
        assert [(h["from"], h["to"]) for h in history] == [
            ("products", "review"),
            ("review", "company"),
            ("company", "products"),
        ]

    def test_invalid_step(self, machine):
        with pytest.raises(InvalidStepError):
            machine.set_step("shipping")

    def test_submit_step_requires_products(self, machine):
        """Test the gate with complete company info but no products."""
        machine.update_company_info(COMPLETE_COMPANY)

        with pytest.raises(CompletenessError) as exc_info:
            machine.set_step("submit")

        assert exc_info.value.products_complete is False
        assert machine.current_step == InquiryStep.PRODUCTS

    def test_submit_step_requires_company(self, machine):
        machine.add_product({"model": "A1"})
        machine.update_company_info({"company_name": "Acme", "email": "x@acme.example"})

        with pytest.raises(CompletenessError) as exc_info:
            machine.set_step("submit")

        assert exc_info.value.missing_company_fields == ["contact_person", "phone"]

    def test_submit_step_allowed_when_complete(self, complete_machine):
        assert complete_machine.set_step("submit") == InquiryStep.SUBMIT

    def test_blank_strings_are_incomplete(self, machine):
        machine.add_product({"model": "A1"})
        machine.update_company_info({**COMPLETE_COMPANY, "phone": "   "})

        report = machine.check_completeness()

        assert report.complete is False
        assert report.missing_company_fields == ["phone"]

    def test_clear_draft(self, complete_machine):
        complete_machine.set_step("review")

        complete_machine.clear_draft()

        assert complete_machine.is_empty()
        assert complete_machine.current_step == InquiryStep.PRODUCTS


class TestDrafts:
    """Test saving and loading drafts through the repository."""

    def test_save_draft_twice_keeps_one_entry(self, complete_machine, repository):
        """Test that re-saving replaces the stored draft."""
        first = complete_machine.save_draft()
        complete_machine.add_product({"model": "A2"})
        second = complete_machine.save_draft()

        drafts = repository.list_drafts()
        assert len(drafts) == 1
        assert first.id == second.id
        assert first.inquiry_number == second.inquiry_number
        assert drafts[0].total_items == 2
        assert drafts[0].status == InquiryStatus.DRAFT

    def test_resave_keeps_stored_notes(self, complete_machine, repository):
        """Test that re-saving revises the stored draft instead of rebuilding it."""
        saved = complete_machine.save_draft()
        repository.save_draft(saved.revise(notes="Call before shipping"))
        complete_machine.update_product(complete_machine.products[0].id, {"quantity": 40})

        resaved = complete_machine.save_draft()

        stored = repository.load_draft(saved.id)
        assert resaved.notes == "Call before shipping"
        assert stored.notes == "Call before shipping"
        assert stored.products[0].quantity == 40
        assert stored.inquiry_number == saved.inquiry_number

    def test_save_draft_leaves_out_empty_project(self, complete_machine):
        record = complete_machine.save_draft()
        assert record.project_info is None
        assert record.inquiry_number.startswith("DRAFT-")

    def test_load_draft(self, complete_machine, repository, catalog):
        """Test restoring a saved draft into a fresh machine."""
        complete_machine.update_project_info({"project_name": "Sensor hub"})
        complete_machine.set_step("review")
        saved = complete_machine.save_draft()

        other = InquiryStateMachine(repository=repository, catalog=catalog)
        state = other.load_draft(saved.id)

        assert state.current_step == InquiryStep.PRODUCTS
        assert state.draft_id == saved.id
        assert [p.model for p in state.products] == ["STM32F401RET6"]
        assert other.company_info().is_complete()
        assert other.project_info().project_name == "Sensor hub"

    def test_load_unknown_draft(self, machine):
        with pytest.raises(RecordNotFoundError):
            machine.load_draft("draft_missing")

    def test_add_favorite(self, machine, repository):
        product = machine.add_product({"model": "ESP32"})

        machine.add_favorite(product.id)

        assert [p.model for p in repository.list_favorite_products()] == ["ESP32"]

    def test_operations_without_repository(self, catalog):
        """Test that repository-backed operations fail clearly without one."""
        machine = InquiryStateMachine(catalog=catalog)
        machine.add_product({"model": "A1"})

        with pytest.raises(InquiryError):
            machine.save_draft()

        # Completing company info without a repository is still allowed
        assert machine.update_company_info(COMPLETE_COMPANY).is_complete()
