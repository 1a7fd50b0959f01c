"""SyncStats model - aggregate counters reported by a full reindex."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SyncStats(BaseModel):
    """Counters of one full reindex run.

    Serialised in camelCase (booksScanned, vectorsUpserted, ...) for the admin endpoint.

    Attributes:
        books_scanned:     Published books read.
        sections_scanned:  Published sections read.
        qas_scanned:       Published Q&As read.
        sections_upserted: Sections whose book resolved and whose records were written.
        qas_upserted:      Q&As whose section and book resolved and whose records were written.
        vectors_upserted:  Total records written (two per upserted entity).
        skipped:           Sections and Q&As dropped because their parent chain did not resolve.
        reset_performed:   Whether the namespace was emptied before the scan.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    books_scanned: int = 0
    sections_scanned: int = 0
    qas_scanned: int = 0
    sections_upserted: int = 0
    qas_upserted: int = 0
    vectors_upserted: int = 0
    skipped: int = 0
    reset_performed: bool = False
