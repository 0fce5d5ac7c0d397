"""
CSV export of collected properties.

Column order and names are fixed; downstream spreadsheets depend on them.
"""
import csv
import io
from pathlib import Path
from typing import Any, Iterable, List, Optional

import structlog

from ..errors import EmptyDatasetError
from ..models import PropertyRecord

logger = structlog.get_logger(__name__)

EXPORT_HEADERS = [
    'Document_num',
    'County_fipscode',
    'Sales_date',
    'Sales_amount',
    'Sold_acre',
    'price_per_acre',
    'longitude',
    'latitude',
    'crop1',
    'crop_ac1',
    'crop2',
    'crop_ac2',
    'crop3',
    'crop_ac3',
]

CROP_ACRE_COLUMNS = {'crop_ac1', 'crop_ac2', 'crop_ac3'}

DEFAULT_FILENAME = "acres_property_data.csv"


def format_value(column: str, value: Any) -> str:
    """Render one cell: None -> "", crop acres with 2 decimals, integral floats without ".0"."""
    if value is None:
        return ''
    if isinstance(value, float):
        if column in CROP_ACRE_COLUMNS:
            return f"{value:.2f}"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def export_csv(records: Iterable[PropertyRecord]) -> str:
    """
    Render records as CSV text, one row per record in collection order.

    Raises:
        EmptyDatasetError: if there are no records
    """
    records = list(records)
    if not records:
        raise EmptyDatasetError()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(EXPORT_HEADERS)
    for record in records:
        row = record.to_row()
        writer.writerow([format_value(column, row.get(column)) for column in EXPORT_HEADERS])

    return buffer.getvalue()


def write_export(
    records: Iterable[PropertyRecord],
    directory: Path,
    filename: Optional[str] = None
) -> Path:
    """
    Export records to a CSV file and return its path.

    Nothing is written when there are no records (EmptyDatasetError).
    """
    records = list(records)
    content = export_csv(records)

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (filename or DEFAULT_FILENAME)
    path.write_text(content, encoding='utf-8', newline='')

    logger.info("CSV export written", path=str(path), rows=len(records))
    return path


def read_export(content: str) -> List[dict]:
    """Parse exported CSV text back into row dicts."""
    return list(csv.DictReader(io.StringIO(content, newline='')))
