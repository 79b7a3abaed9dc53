"""Tests for the scan form controller."""

import asyncio

import pytest

from bookscan.core.controller import DEFAULT_FILENAME, FILENAME_PROMPT, FormController
from bookscan.core.errors import FormStateError
from bookscan.core.export import EMPTY_NOTICE
from bookscan.core.lookup import MISS_NOTICE, LookupClient
from bookscan.core.models import BookRecord
from conftest import ANIMAL_FARM, ScriptedPrompter, catalog_transport


def make_controller(notifier, payload=ANIMAL_FARM):
    lookup = LookupClient(notifier, base_url="https://catalog.test/api/books", transport=catalog_transport(payload))
    return FormController(notifier, lookup=lookup)


@pytest.mark.parametrize("value", ["", "12345", "045152653X", "04515265381234", "isbn"])
def test_malformed_isbn_leaves_form_hidden(notifier, value):
    controller = make_controller(notifier)

    assert asyncio.run(controller.lookup(value)) is False

    assert controller.form.visible is False
    assert len(controller.state.store) == 0
    assert notifier.messages == ["Please enter a 10- or 13-digit ISBN."]


def test_lookup_opens_form_with_result(notifier):
    controller = make_controller(notifier)

    assert asyncio.run(controller.lookup(" 0451526538 ")) is True

    assert controller.form.visible is True
    assert controller.form.isbn == "0451526538"
    assert controller.form.fields["title"] == "Animal Farm"
    assert controller.form.fields["author"] == "George Orwell"
    assert controller.form.fields["notes"] == ""


def test_lookup_miss_still_opens_empty_form(notifier):
    controller = make_controller(notifier, payload={})

    asyncio.run(controller.lookup("0451526538"))

    assert controller.form.visible is True
    assert set(controller.form.fields.values()) == {""}
    assert notifier.messages == [MISS_NOTICE]


def test_save_commits_record_and_resets_form(notifier):
    controller = make_controller(notifier)
    asyncio.run(controller.lookup("0451526538"))

    record = controller.save({"notes": "  first edition  "})

    assert record == BookRecord(
        isbn="0451526538",
        title="Animal Farm",
        author="George Orwell",
        notes="first edition",
    )
    assert controller.state.store.all() == (record,)
    assert controller.state.table.rows == [record.as_row()]
    assert controller.form.visible is False
    assert controller.form.isbn == ""
    assert set(controller.form.fields.values()) == {""}
    assert controller.form.focus == "isbn"


def test_save_takes_edited_values_trimmed(notifier):
    controller = make_controller(notifier)
    asyncio.run(controller.lookup("0451526538"))

    record = controller.save(
        {
            "isbn": " 0451526538 ",
            "title": " Animal Farm: A Fairy Story ",
            "author": "George Orwell",
            "publisher": " Signet Classics",
            "publish_date": "1996 ",
            "lccn": "",
            "notes": "",
        }
    )

    assert record.isbn == "0451526538"
    assert record.title == "Animal Farm: A Fairy Story"
    assert record.publisher == "Signet Classics"
    assert record.publish_date == "1996"


def test_save_allows_all_empty_fields(notifier):
    controller = make_controller(notifier, payload={})
    asyncio.run(controller.lookup("0451526538"))

    record = controller.save({name: "" for name in ("title", "author", "publisher", "publish_date", "lccn", "notes")})

    assert record == BookRecord.empty("0451526538")
    assert len(controller.state.store) == 1


def test_save_while_hidden_is_rejected(notifier):
    controller = make_controller(notifier)

    with pytest.raises(FormStateError):
        controller.save({"title": "Animal Farm"})
    assert len(controller.state.store) == 0


class GatedLookup:
    """Lookup whose responses are released by the test, one ISBN at a time."""

    def __init__(self):
        self.gates = {}

    async def resolve(self, isbn):
        gate = self.gates.setdefault(isbn, asyncio.Event())
        await gate.wait()
        return BookRecord(isbn=isbn, title=f"title for {isbn}")


def test_stale_lookup_does_not_overwrite_newer_one(notifier):
    lookup = GatedLookup()
    controller = FormController(notifier, lookup=lookup)

    async def scenario():
        lookup.gates["0451526538"] = asyncio.Event()
        lookup.gates["0140449264"] = asyncio.Event()
        first = asyncio.create_task(controller.lookup("0451526538"))
        await asyncio.sleep(0)
        second = asyncio.create_task(controller.lookup("0140449264"))
        await asyncio.sleep(0)

        # The newer lookup answers first, then the older one straggles in.
        lookup.gates["0140449264"].set()
        await second
        lookup.gates["0451526538"].set()
        await first

    asyncio.run(scenario())

    assert controller.form.visible is True
    assert controller.form.fields["title"] == "title for 0140449264"


def test_export_with_no_records_notifies_and_skips_prompt(notifier):
    controller = make_controller(notifier)
    prompter = ScriptedPrompter("books")

    assert controller.export(prompter) is None
    assert notifier.messages == [EMPTY_NOTICE]
    assert prompter.asked == []


@pytest.mark.parametrize("answer", [None, ""])
def test_export_cancelled_prompt_produces_nothing(notifier, answer):
    controller = make_controller(notifier)
    asyncio.run(controller.lookup("0451526538"))
    controller.save()
    prompter = ScriptedPrompter(answer)

    assert controller.export(prompter) is None
    assert prompter.asked == [(FILENAME_PROMPT, DEFAULT_FILENAME)]
    assert notifier.messages == []


def test_export_uses_prompted_filename(notifier):
    controller = make_controller(notifier)
    asyncio.run(controller.lookup("0451526538"))
    controller.save()

    out = controller.export(ScriptedPrompter("shelf 3"))

    assert out.filename == "shelf 3.xlsx"
    assert out.content[:2] == b"PK"
