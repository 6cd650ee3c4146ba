"""
result_exporter.py - Stabilization result export

Collects per-frame results and tracking events and writes them as
CSV (pandas) or JSON, with a summary for quick comparison of presets.

Version: 1.0
Author: AR Brochure Team
"""

import json
import numpy as np
import pandas as pd
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ResultExporter:
    """
    Result exporter

    Example:
        >>> exporter = ResultExporter("output", output_format="csv")
        >>> exporter.add_result(result)
        >>> path = exporter.save()
    """

    def __init__(
        self,
        output_dir: str = "output",
        output_format: str = "csv"
    ):
        if output_format not in {"csv", "json"}:
            raise ValueError(f"output_format must be csv|json, got {output_format}")

        self.output_dir = Path(output_dir)
        self.output_format = output_format
        self._results: List[Dict[str, Any]] = []
        self._events: List[Dict[str, Any]] = []

    def add_result(self, result) -> None:
        """Add a FrameResult (None entries are ignored)"""
        if result is None:
            return
        self._results.append(result.to_dict())

    def add_event(self, event) -> None:
        """Add a TrackingEvent; usable directly as a system listener"""
        self._events.append(event.to_dict())

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(self._results)

    def save(self, filename: Optional[str] = None) -> Path:
        """
        Write results to output_dir

        Args:
            filename: file stem (timestamped if omitted)

        Returns:
            path of the results file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stem = filename or f"stabilization_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        if self.output_format == "csv":
            filepath = self.output_dir / f"{stem}.csv"
            self.to_dataframe().to_csv(filepath, index=False)

            events_path = self.output_dir / f"{stem}_events.json"
            with open(events_path, 'w') as f:
                json.dump(self._events, f, indent=2, default=_json_default)
        else:
            filepath = self.output_dir / f"{stem}.json"
            with open(filepath, 'w') as f:
                json.dump(
                    {
                        'results': self._results,
                        'events': self._events,
                        'summary': self.get_summary()
                    },
                    f,
                    indent=2,
                    default=_json_default
                )

        logger.info(f"Results saved to {filepath}")
        return filepath

    def get_summary(self) -> Dict[str, Any]:
        """Aggregate statistics over the collected frames"""
        event_counts: Dict[str, int] = {}
        for event in self._events:
            event_counts[event['event_type']] = event_counts.get(event['event_type'], 0) + 1

        if not self._results:
            return {'num_frames': 0, 'events': event_counts}

        df = self.to_dataframe()
        return {
            'num_frames': int(len(df)),
            'mean_position_offset': float(df['position_offset'].mean()),
            'max_position_offset': float(df['position_offset'].max()),
            'mean_rotation_offset_deg': float(df['rotation_offset_deg'].mean()),
            'mean_movement_velocity': float(df['movement_velocity'].mean()),
            'jitter_ratio': float(df['is_jittering'].astype(bool).mean()),
            'mean_processing_time_ms': float(df['processing_time_ms'].mean()),
            'events': event_counts
        }

    def clear(self):
        self._results.clear()
        self._events.clear()

    def __len__(self) -> int:
        return len(self._results)


def _json_default(obj):
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
