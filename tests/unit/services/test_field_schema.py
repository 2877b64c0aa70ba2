import pytest

from docsheet.core.exceptions import ValidationError
from docsheet.schemas.fields import Field, FieldType
from docsheet.services.field_schema import FieldSchemaEditor, prepare_fields, validate_fields


class TestValidateFields:

    def test_accepts_named_fields(self):
        validate_fields([Field(name="a"), Field(name="b")])

    def test_rejects_empty_list(self):
        with pytest.raises(ValidationError, match="At least one field is required"):
            validate_fields([])

    def test_rejects_blank_name(self):
        with pytest.raises(ValidationError, match=r"Field name is required \(field 2\)"):
            validate_fields([Field(name="a"), Field(name="   ")])

    def test_rejects_duplicate_names_case_insensitively(self):
        with pytest.raises(ValidationError, match="must be unique"):
            validate_fields([Field(name="Total"), Field(name=" total ")])

    def test_duplicates_allowed_when_uniqueness_disabled(self):
        validate_fields([Field(name="total"), Field(name="total")], enforce_unique_names=False)


def test_prepare_fields_trims_and_reindexes():
    fields = [Field(name=" b ", order=7), Field(name="a", order=3)]

    prepared = prepare_fields(fields)

    assert [field.name for field in prepared] == ["b", "a"]
    assert [field.order for field in prepared] == [0, 1]
    # Source list is untouched
    assert fields[0].name == " b "


class TestFieldSchemaEditor:

    def test_starts_with_one_blank_field(self):
        editor = FieldSchemaEditor()

        assert len(editor) == 1
        assert editor.fields[0].name == ""
        assert editor.fields[0].type == FieldType.TEXT

    def test_remove_last_field_is_noop(self):
        editor = FieldSchemaEditor()
        only = editor.fields[0]

        assert editor.remove_field(only.id) is False
        assert len(editor) == 1

    def test_remove_field(self):
        editor = FieldSchemaEditor([Field(name="a"), Field(name="b")])
        first = editor.fields[0]

        assert editor.remove_field(first.id) is True
        assert [field.name for field in editor.fields] == ["b"]

    def test_remove_unknown_field(self):
        editor = FieldSchemaEditor([Field(name="a"), Field(name="b")])

        assert editor.remove_field("missing") is False
        assert len(editor) == 2

    def test_update_field_merges_changes_and_keeps_id(self):
        editor = FieldSchemaEditor([Field(name="a")])
        field_id = editor.fields[0].id

        updated = editor.update_field(field_id, name="amount", type=FieldType.NUMBER, id="other")

        assert updated.id == field_id
        assert updated.name == "amount"
        assert editor.fields[0].type == FieldType.NUMBER

    def test_update_field_accepts_legacy_field_name(self):
        editor = FieldSchemaEditor([Field(name="")])
        field_id = editor.fields[0].id

        updated = editor.update_field(field_id, field_name="total")

        assert updated.name == "total"
        assert editor.fields[0].name == "total"

    def test_update_unknown_field_is_noop(self):
        editor = FieldSchemaEditor([Field(name="a")])

        assert editor.update_field("missing", name="b") is None
        assert editor.fields[0].name == "a"

    def test_save_rejects_blank_field(self):
        editor = FieldSchemaEditor([Field(name="a")])
        editor.add_field()

        with pytest.raises(ValidationError):
            editor.save()

    def test_save_returns_reindexed_fields(self):
        editor = FieldSchemaEditor([Field(name="a")])
        added = editor.add_field()
        editor.update_field(added.id, name="b")

        saved = editor.save()

        assert [(field.name, field.order) for field in saved] == [("a", 0), ("b", 1)]

    def test_fields_are_copies(self):
        editor = FieldSchemaEditor([Field(name="a")])

        editor.fields[0].name = "changed"

        assert editor.fields[0].name == "a"
