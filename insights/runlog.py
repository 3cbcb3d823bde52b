"""
Run logging for analysis runs.

Writes one JSON log per run (success or error).
"""

import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from .service import AnalysisRun


class RunLogger:
    """Structured JSON logging for analysis runs."""

    def __init__(self, runs_dir: Path | str):
        """
        Initialize logger.

        Args:
            runs_dir: Directory to write log files
        """
        self.runs_dir = Path(runs_dir)
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def log_run(self, run: "AnalysisRun") -> Path:
        """
        Log a completed run to JSON file.

        Args:
            run: AnalysisRun from the service

        Returns:
            Path to log file
        """
        log_entry = {
            "run_id": run.run_id,
            "timestamp": run.timestamp.isoformat(),
            "duration_seconds": run.duration_seconds,
            "analysis_type": run.analysis_type,
            "engine": run.engine,
            "results": {
                "profiles": run.profile_count,
                "predictions": run.prediction_count,
                "parse_strategy": run.parse_strategy,
                "dropped_records": run.dropped_records,
                "hashtag_updates": run.hashtag_updates,
                "failed_hashtag_updates": run.failed_hashtag_updates,
            },
            "status": "OK",
        }

        log_path = self.runs_dir / f"{run.run_id}.json"
        with open(log_path, "w", encoding="utf-8") as f:
            json.dump(log_entry, f, indent=2, default=str, ensure_ascii=False)

        return log_path

    def log_failure(self, run_id: str, analysis_type: str, error: str) -> Path:
        """
        Log a run that raised.

        Args:
            run_id: Unique run ID
            analysis_type: Requested analysis type
            error: Error message

        Returns:
            Path to log file
        """
        log_entry = {
            "run_id": run_id,
            "timestamp": datetime.now().isoformat(),
            "analysis_type": analysis_type,
            "status": "ERROR",
            "error": error,
        }

        log_path = self.runs_dir / f"{run_id}.json"
        with open(log_path, "w", encoding="utf-8") as f:
            json.dump(log_entry, f, indent=2, ensure_ascii=False)

        return log_path

    def get_all_logs(self) -> list[dict]:
        """All run logs, in file name order."""
        logs = []
        for log_file in sorted(self.runs_dir.glob("run_*.json")):
            with open(log_file, encoding="utf-8") as f:
                logs.append(json.load(f))
        return logs

    def get_summary_dataframe(self) -> pd.DataFrame:
        """
        Get summary of all runs as DataFrame.

        Returns:
            DataFrame with one row per run, newest first
        """
        logs = self.get_all_logs()
        if not logs:
            return pd.DataFrame()

        summary = []
        for log in logs:
            entry = {
                "run_id": log["run_id"],
                "analysis_type": log["analysis_type"],
                "timestamp": log["timestamp"],
                "status": log["status"],
            }
            if "results" in log:
                entry["engine"] = log.get("engine")
                entry["predictions"] = log["results"].get("predictions")
                entry["duration_seconds"] = log.get("duration_seconds")
            else:
                entry["error"] = log.get("error")
            summary.append(entry)

        df = pd.DataFrame(summary)
        return df.sort_values("timestamp", ascending=False)
