"""
Analytics export for focusboard

Exports one analytics query as a nested JSON document or as a flattened CSV
of ``path,type,value`` rows. Both formats carry the same fields: flattening
the parsed JSON and parsing the CSV give identical values.
"""

import csv
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from io import StringIO
from typing import Any, Dict, List, Optional, Sequence

from .. import __version__
from ..utils.validation import DateRange

CSV_FIELDS = ['path', 'type', 'value']


class ExportFormat(Enum):
    """Supported export formats"""
    JSON = "json"
    CSV = "csv"


def _to_data(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_to_data(item) for item in value]
    return value


def build_export_payload(date_range: DateRange,
                         summary: Any,
                         time_distribution: Any,
                         heatmap: Sequence[Any],
                         duration_distribution: Sequence[Any],
                         optimal_session_length: Any,
                         goal_progress: Sequence[Any],
                         streak: Any,
                         comparison: Any,
                         weekly_reports: Sequence[Any],
                         generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Assemble already computed analytics results into one export document.

    Every value comes from the result objects passed in; nothing is derived
    here.
    """
    generated_at = generated_at or datetime.now()
    return {
        'metadata': {
            'start_date': date_range.start_date.isoformat(),
            'end_date': date_range.end_date.isoformat(),
            'generated_at': generated_at.replace(microsecond=0).isoformat(),
            'version': __version__,
        },
        'summary': _to_data(summary),
        'time_distribution': _to_data(time_distribution),
        'heatmap': _to_data(list(heatmap)),
        'duration_distribution': _to_data(list(duration_distribution)),
        'optimal_session_length': _to_data(optimal_session_length),
        'goal_progress': _to_data(list(goal_progress)),
        'streak': _to_data(streak),
        'comparison': _to_data(comparison),
        'weekly_reports': _to_data(list(weekly_reports)),
    }


def flatten_payload(payload: Any, prefix: str = "") -> Dict[str, Any]:
    """Flatten nested dicts and lists into ``dotted.path -> scalar``.

    Empty containers are kept as ``{}`` or ``[]`` leaves so no field is lost.
    """
    flat: Dict[str, Any] = {}

    if isinstance(payload, dict):
        if not payload and prefix:
            flat[prefix] = {}
        for key, value in payload.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten_payload(value, path))
    elif isinstance(payload, (list, tuple)):
        if not payload:
            flat[prefix] = []
        for index, value in enumerate(payload):
            flat.update(flatten_payload(value, f"{prefix}.{index}" if prefix else str(index)))
    else:
        flat[prefix] = payload

    return flat


def _value_type(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, int):
        return 'int'
    if isinstance(value, float):
        return 'float'
    if isinstance(value, list):
        return 'list'
    if isinstance(value, dict):
        return 'dict'
    return 'str'


def _format_value(value: Any) -> str:
    if value is None or isinstance(value, (list, dict)):
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        return repr(value)
    return str(value)


def _parse_value(value_type: str, raw: str) -> Any:
    if value_type == 'null':
        return None
    if value_type == 'bool':
        return raw == 'true'
    if value_type == 'int':
        return int(raw)
    if value_type == 'float':
        return float(raw)
    if value_type == 'list':
        return []
    if value_type == 'dict':
        return {}
    if value_type == 'str':
        return raw
    raise ValueError(f"Unknown value type '{value_type}' in CSV export")


def parse_csv_export(content: str) -> Dict[str, Any]:
    """Read a CSV export back into its flattened ``path -> value`` form.

    Raises:
        ValueError: If the header or a value type is not recognized
    """
    reader = csv.DictReader(StringIO(content))
    if reader.fieldnames != CSV_FIELDS:
        raise ValueError(f"Expected CSV columns {CSV_FIELDS}, got {reader.fieldnames}")
    return {row['path']: _parse_value(row['type'], row['value']) for row in reader}


class BaseExporter(ABC):
    """Abstract base class for exporters"""

    @abstractmethod
    def export(self, payload: Dict[str, Any], **kwargs) -> str:
        """Export an analytics payload to string format"""
        pass

    @abstractmethod
    def get_file_extension(self) -> str:
        """Get recommended file extension"""
        pass


class JSONExporter(BaseExporter):
    """Export to JSON format"""

    def export(self, payload: Dict[str, Any], **kwargs) -> str:
        indent = kwargs.get('indent', 2)
        return json.dumps(payload, indent=indent, ensure_ascii=False)

    def get_file_extension(self) -> str:
        return "json"


class CSVExporter(BaseExporter):
    """Export to flattened CSV format"""

    def export(self, payload: Dict[str, Any], **kwargs) -> str:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_FIELDS, lineterminator='\n')
        writer.writeheader()

        for path, value in flatten_payload(payload).items():
            writer.writerow({
                'path': path,
                'type': _value_type(value),
                'value': _format_value(value),
            })

        return output.getvalue()

    def get_file_extension(self) -> str:
        return "csv"


class AnalyticsExporter:
    """Manages the export formats"""

    def __init__(self):
        self.exporters = {
            ExportFormat.JSON: JSONExporter(),
            ExportFormat.CSV: CSVExporter(),
        }

    def export(self, payload: Dict[str, Any], format: ExportFormat,
               output_path: Optional[str] = None, **kwargs) -> str:
        """Export a payload in the given format, optionally writing it to a file"""
        if format not in self.exporters:
            raise ValueError(f"Export format {format.value} not supported")

        content = self.exporters[format].export(payload, **kwargs)
        if output_path:
            self._write_to_file(content, output_path)
        return content

    def get_supported_formats(self) -> List[str]:
        return [fmt.value for fmt in self.exporters]

    def get_file_extension(self, format: ExportFormat) -> str:
        if format not in self.exporters:
            return "txt"
        return self.exporters[format].get_file_extension()

    def _write_to_file(self, content: str, file_path: str):
        dir_path = os.path.dirname(file_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
