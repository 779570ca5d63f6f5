from __future__ import annotations

from datetime import UTC, datetime

from genbatch.schema.generated_items import GeneratedItem
from genbatch.storage.postgres_results_repo import _to_record


def test_generated_item_maps_to_record() -> None:
  created = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
  item = GeneratedItem(
    id="li-1",
    kind="learning_item",
    content="breakfast",
    lang_code="en-US",
    item_metadata={"batch_id": "b1"},
    media={"audio_url": "https://cdn.test/a.mp3"},
    is_active=True,
    created_at=created,
    updated_at=created,
  )

  record = _to_record(item)

  assert record.id == "li-1"
  assert record.metadata == {"batch_id": "b1"}
  assert record.media == {"audio_url": "https://cdn.test/a.mp3"}
  assert record.created_at == "2024-05-01T12:00:00+00:00"


def test_metadata_column_keeps_its_sql_name() -> None:
  assert "metadata" in GeneratedItem.__table__.c
  assert any(index.name == "ix_generated_items_batch_id" for index in GeneratedItem.__table__.indexes)
