import io

import pytest
from faqdesk.core.exceptions import UnsupportedFileTypeError
from faqdesk.models.batch import AnswerItem, BatchFileFormat
from faqdesk.services.batch import file_codec
from openpyxl import Workbook


def _make_items(count: int):
    return [
        AnswerItem(question=f"Question {i}, with comma", answer=f'Answer "{i}"\nline two')
        for i in range(count)
    ]


def _make_workbook(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestCsv:
    @pytest.mark.unit
    @pytest.mark.parametrize("count", [0, 1, 100])
    def test_written_answers_read_back_in_order(self, count):
        items = _make_items(count)

        content = file_codec.write_answers(items, BatchFileFormat.CSV)
        rows = file_codec.read_csv_rows(content)

        assert rows == [(item.question, item.answer) for item in items]

    @pytest.mark.unit
    def test_reads_headerless_file_with_bom_and_trailing_blank_rows(self):
        content = "\ufeffWhat is VPN?,topic:network\nHow to print?\n,\n\n".encode("utf-8")

        rows = file_codec.read_csv_rows(content)

        assert rows == [("What is VPN?", "topic:network"), ("How to print?", "")]

    @pytest.mark.unit
    def test_keeps_empty_rows_between_questions(self):
        content = b"Question,Metadata\nFirst?,\n,\nThird?,\n"

        batch = file_codec.read_questions(content, BatchFileFormat.CSV)

        assert [item.question for item in batch.items] == ["First?", "", "Third?"]
        assert batch.language_code is None


class TestXlsx:
    @pytest.mark.unit
    def test_language_read_from_header_column(self):
        content = _make_workbook(
            [
                ["Question", "Metadata", "Language"],
                ["¿Cómo imprimo?", None, "ES"],
                ["¿Qué es VPN?", "topic:network", None],
            ]
        )

        batch = file_codec.read_questions(content, BatchFileFormat.XLSX)

        assert batch.language_code == "es"
        assert [(i.question, i.metadata) for i in batch.items] == [
            ("¿Cómo imprimo?", ""),
            ("¿Qué es VPN?", "topic:network"),
        ]

    @pytest.mark.unit
    def test_no_language_without_header(self):
        content = _make_workbook([["How to print?"], ["What is VPN?"]])

        pairs, language = file_codec.read_xlsx_rows(content)

        assert language is None
        assert pairs == [("How to print?", ""), ("What is VPN?", "")]

    @pytest.mark.unit
    def test_written_answers_read_back(self):
        items = _make_items(3)

        content = file_codec.write_answers(items, BatchFileFormat.XLSX)
        pairs, _ = file_codec.read_xlsx_rows(content)

        assert pairs == [(item.question, item.answer) for item in items]


class TestFileFormat:
    @pytest.mark.unit
    def test_extension_is_case_insensitive(self):
        assert BatchFileFormat.from_filename("Questions.XLSX") is BatchFileFormat.XLSX

    @pytest.mark.unit
    def test_unsupported_extension(self):
        with pytest.raises(UnsupportedFileTypeError) as exc_info:
            BatchFileFormat.from_filename("questions.docx")

        assert exc_info.value.extension == ".docx"
