"""
Export Service

Renders product drafts as Kaspi.kz bulk-upload CSV files, either a
single Russian CSV or a ZIP with Russian and Kazakh variants.
"""

import csv
import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from app.domain.product import ExportFormat
from app.infrastructure.db.models.product_draft import ProductDraft


logger = logging.getLogger(__name__)


MAX_IMAGES = 8

CSV_COLUMNS = [
    "sku",
    "name",
    "brand",
    "category",
    "price",
    "qty",
    "description",
    *[f"image{index}" for index in range(1, MAX_IMAGES + 1)],
    "attributes_notes",
]


@dataclass
class ExportFile:
    content: bytes
    media_type: str
    filename: str


def image_names(draft: ProductDraft) -> List[str]:
    """Up to eight image file names, padded with blanks."""
    images = (draft.variants or {}).get("images") or []
    names = [str(name) for name in images if name][:MAX_IMAGES]
    return names + [""] * (MAX_IMAGES - len(names))


def attributes_notes(draft: ProductDraft) -> str:
    return "; ".join(f"{key}: {value}" for key, value in (draft.attributes or {}).items())


def fallback_title(draft: ProductDraft) -> str:
    return " ".join(part for part in (draft.type, draft.brand, draft.model) if part)


def _format_number(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def draft_row(draft: ProductDraft, locale: str = "ru") -> List[str]:
    """One CSV row for a draft in the given locale ('ru' or 'kz')."""
    if locale == "kz":
        name = draft.title_kz or draft.title_ru or fallback_title(draft)
        description = draft.desc_kz or draft.desc_ru or ""
    else:
        name = draft.title_ru or fallback_title(draft)
        description = draft.desc_ru or ""

    return [
        draft.sku,
        name,
        draft.brand or "",
        draft.category or "",
        _format_number(draft.price),
        _format_number(draft.quantity),
        description,
        *image_names(draft),
        attributes_notes(draft),
    ]


def render_csv(drafts: Iterable[ProductDraft], locale: str = "ru") -> bytes:
    """CSV with a header row, UTF-8 with BOM so spreadsheet apps keep Cyrillic."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for draft in drafts:
        writer.writerow(draft_row(draft, locale))
    return buffer.getvalue().encode("utf-8-sig")


class ExportService:
    """Builds downloadable export files from drafts."""

    def render(
        self,
        drafts: Sequence[ProductDraft],
        export_format: ExportFormat = ExportFormat.ZIP,
        now: datetime = None,
    ) -> ExportFile:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d-%H%M%S")

        if export_format == ExportFormat.CSV:
            export = ExportFile(
                content=render_csv(drafts, "ru"),
                media_type="text/csv; charset=utf-8",
                filename=f"kaspi-export-{stamp}.csv",
            )
        else:
            buffer = io.BytesIO()
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr("products_ru.csv", render_csv(drafts, "ru"))
                archive.writestr("products_kz.csv", render_csv(drafts, "kz"))
            export = ExportFile(
                content=buffer.getvalue(),
                media_type="application/zip",
                filename=f"kaspi-export-{stamp}.zip",
            )

        logger.info(
            f"Rendered {export_format.value} export of {len(drafts)} drafts "
            f"({len(export.content)} bytes)"
        )
        return export
