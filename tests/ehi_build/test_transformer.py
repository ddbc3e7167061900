from __future__ import annotations

import pytest

from ehi_cli.ehi_build.extractor import extract_query_blocks
from ehi_cli.ehi_build.transformer import (
    count_placeholders,
    expand_placeholders,
    read_placeholders,
    render_placeholder,
    transform_document,
    unwrap_placeholders,
)
from ehi_cli.ehi_query.types import QueryResult
from ehi_cli.ehi_widget.payload import WidgetPayload
from ehi_cli.shared.exceptions import BakeIntegrityError

DOCUMENT = """Intro  text.

<example-query description="Patients">
SELECT * FROM PATIENT;
</example-query>
Trailing "quoted" & <b>markup</b>.

<example-query>
SELECT 2;
"""

PATIENTS = QueryResult.success(("PAT_ID",), [{"PAT_ID": "P1"}])


def test_transform_replaces_only_well_formed_blocks() -> None:
    output = transform_document("doc", DOCUMENT, {("doc", 0): PATIENTS})

    placeholder = render_placeholder(
        WidgetPayload(widget_id="doc-0", query="SELECT * FROM PATIENT;", description="Patients", result=PATIENTS)
    )
    start = DOCUMENT.index("<example-query")
    end = DOCUMENT.index("</example-query>") + len("</example-query>")
    assert output == DOCUMENT[:start] + placeholder + "\n" + DOCUMENT[end:]
    assert "\n" not in placeholder
    assert "<example-query>\nSELECT 2;" in output


def test_placeholder_payload_round_trips() -> None:
    output = transform_document("doc", DOCUMENT, {("doc", 0): PATIENTS})

    (payload,) = read_placeholders(output)

    assert payload.widget_id == "doc-0"
    assert payload.query == "SELECT * FROM PATIENT;"
    assert payload.description == "Patients"
    assert payload.result == PATIENTS
    assert count_placeholders(output) == 1


def test_missing_result_fails_loudly() -> None:
    blocks = list(extract_query_blocks("doc", DOCUMENT))
    assert len(blocks) == 1

    with pytest.raises(BakeIntegrityError, match="doc-0"):
        transform_document("doc", DOCUMENT, {})


def test_error_results_are_carried_verbatim() -> None:
    failure = QueryResult.failure('near "SELEKT": syntax error')

    output = transform_document("doc", "<example-query>SELEKT 1</example-query>", {("doc", 0): failure})

    (payload,) = read_placeholders(output)
    assert payload.result.error == 'near "SELEKT": syntax error'
    assert payload.result.columns is None


def test_unwrap_and_expand_placeholders() -> None:
    placeholder = render_placeholder(
        WidgetPayload(widget_id="doc-0", query="SELECT 1", description=None, result=PATIENTS)
    )
    markup = f"<h1>T</h1>\n<p>{placeholder}</p>\n<p>after</p>"

    assert unwrap_placeholders(markup) == f"<h1>T</h1>\n{placeholder}\n<p>after</p>"

    expanded = expand_placeholders(markup, lambda payload: f"<section>{payload.widget_id}</section>")
    assert expanded == "<h1>T</h1>\n<section>doc-0</section>\n<p>after</p>"
    assert count_placeholders(expanded) == 0
