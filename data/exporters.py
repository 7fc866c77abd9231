"""
Data Exporters

Export pipeline results to Excel and CSV.

Layout:
- Summary: one row per model (accuracy, baseline, kappa, ...)
- Per-class metrics of every model
- Confusion matrix of every model
- Grid-search table of every tuned model
"""

from typing import Dict, Optional, Any
import pandas as pd
from pathlib import Path
from datetime import datetime
import warnings

from models.evaluation import EvaluationResult
from models.tuning import TuningResult


EXCEL_SHEET_NAME_LIMIT = 31


class ExcelExporter:
    """
    Export results to an Excel workbook with multiple sheets.

    Attributes:
        filepath (Path): Output Excel file path
        sheets (Dict[str, Dict[str, Any]]): sheet name -> {'data', 'index'}
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        self.sheets: Dict[str, Dict[str, Any]] = {}

    def add_sheet(self, sheet_name: str, data: pd.DataFrame, index: bool = True) -> None:
        """
        Add a sheet to the workbook.

        Args:
            sheet_name: Name of the sheet (truncated to Excel's 31 characters; a
                numeric suffix is added when the name is already taken)
            data: DataFrame to export
            index: Whether to include the DataFrame index
        """
        if not isinstance(data, pd.DataFrame):
            raise ValueError(f"Data must be a pandas DataFrame, got {type(data)}")

        original_name = sheet_name
        if len(sheet_name) > EXCEL_SHEET_NAME_LIMIT:
            sheet_name = sheet_name[:EXCEL_SHEET_NAME_LIMIT]

        # Never replace a sheet that is already registered
        counter = 1
        while sheet_name in self.sheets:
            suffix = f"~{counter}"
            sheet_name = original_name[:EXCEL_SHEET_NAME_LIMIT - len(suffix)] + suffix
            counter += 1

        if sheet_name != original_name:
            warnings.warn(f"Sheet name '{original_name}' renamed to '{sheet_name}'")

        self.sheets[sheet_name] = {'data': data, 'index': index}

    def add_evaluation_sheets(self, name: str, result: EvaluationResult) -> None:
        """Per-class metrics and confusion matrix of one model."""
        self.add_sheet(f"{name}_metrics", result.per_class, index=True)
        self.add_sheet(f"{name}_confusion", result.confusion_matrix, index=True)

    def add_tuning_sheet(self, name: str, result: TuningResult) -> None:
        self.add_sheet(f"{name}_tuning", result.cv_results, index=False)

    def write(self, auto_adjust_columns: bool = True, freeze_panes: Optional[tuple] = (1, 1)) -> Path:
        """
        Write all sheets with openpyxl.

        Args:
            auto_adjust_columns: Fit column widths to their content
            freeze_panes: Freeze panes position (row, col) or None

        Returns:
            Path of the written file
        """
        if not self.sheets:
            warnings.warn("No sheets to write")
            return self.filepath

        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(self.filepath, engine='openpyxl') as writer:
            for sheet_name, sheet_info in self.sheets.items():
                sheet_info['data'].to_excel(writer, sheet_name=sheet_name, index=sheet_info['index'])
                worksheet = writer.sheets[sheet_name]

                if auto_adjust_columns:
                    for column in worksheet.columns:
                        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None),
                                         default=0)
                        worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

                if freeze_panes:
                    row, col = freeze_panes
                    worksheet.freeze_panes = worksheet.cell(row + 1, col + 1).coordinate

        print(f"Excel file written: {self.filepath} (sheets: {list(self.sheets.keys())})")
        return self.filepath


class CSVExporter:
    """
    Export results to CSV files, one file per table.
    """

    def __init__(self, output_directory: str):
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def export_table(self, table: pd.DataFrame, filename: str, index: bool = True) -> Path:
        filepath = self.output_directory / filename
        table.to_csv(filepath, index=index)
        print(f"Exported: {filepath}")
        return filepath

    def export_evaluation(self, name: str, result: EvaluationResult) -> None:
        self.export_table(result.per_class, f"{name}_metrics.csv")
        self.export_table(result.confusion_matrix, f"{name}_confusion.csv")

    def export_tuning(self, name: str, result: TuningResult) -> None:
        self.export_table(result.cv_results, f"{name}_tuning.csv", index=False)


class ResultsExporter:
    """
    High-level exporter that organizes all results of a pipeline run.

    Creates either a single Excel workbook or a directory of CSV files,
    optionally timestamped.
    """

    def __init__(self, output_path: str, format: str = 'excel', include_timestamp: bool = False):
        """
        Initialize results exporter.

        Args:
            output_path: Output file path (Excel) or directory (CSV)
            format: 'excel' or 'csv'
            include_timestamp: Add a timestamp to the file or directory name
        """
        if format not in ['excel', 'csv']:
            raise ValueError(f"Format must be 'excel' or 'csv', got '{format}'")

        self.output_path = Path(output_path)
        self.format = format

        if include_timestamp:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            if format == 'excel':
                suffix = self.output_path.suffix or '.xlsx'
                self.output_path = self.output_path.parent / f"{self.output_path.stem}_{timestamp}{suffix}"
            else:
                self.output_path = self.output_path / timestamp

        if format == 'excel' and self.output_path.suffix != '.xlsx':
            self.output_path = self.output_path.with_suffix('.xlsx')

    def export(
        self,
        comparison: pd.DataFrame,
        evaluations: Dict[str, EvaluationResult],
        tunings: Optional[Dict[str, TuningResult]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Export a comparison table plus every model's details.

        Args:
            comparison: One row per model
            evaluations: model name -> EvaluationResult
            tunings: model name -> TuningResult, for tuned models
            metadata: Run metadata (seed, split sizes, ...)

        Returns:
            Path to the exported file or directory
        """
        tunings = tunings or {}

        if self.format == 'excel':
            exporter = ExcelExporter(str(self.output_path))
            exporter.add_sheet('Summary', comparison, index=True)
            for name, result in evaluations.items():
                exporter.add_evaluation_sheets(name, result)
            for name, result in tunings.items():
                exporter.add_tuning_sheet(name, result)
            if metadata:
                exporter.add_sheet('Metadata', pd.DataFrame([metadata]), index=False)
            exporter.write()
        else:
            exporter = CSVExporter(str(self.output_path))
            exporter.export_table(comparison, 'summary.csv')
            for name, result in evaluations.items():
                exporter.export_evaluation(name, result)
            for name, result in tunings.items():
                exporter.export_tuning(name, result)
            if metadata:
                exporter.export_table(pd.DataFrame([metadata]), 'metadata.csv', index=False)

        return str(self.output_path)
