# =============================================================================
# utils/csv_utils.py - CSV / Excel input and report output
# =============================================================================

import csv
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import logging

import pandas as pd

from core.models import PersonRecord

PERSON_COLUMNS = ['FirstName', 'LastName', 'DepartmentID']
DEPARTMENT_COLUMNS = ['DepartmentID', 'OU']
EXCEL_SUFFIXES = {'.xlsx', '.xls'}


class CSVHandler:
    """Utilities for reading and writing CSV files"""

    @staticmethod
    def read_csv(file_path: str, encoding: str = 'utf-8-sig',
                 delimiter: str = ',') -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read CSV file and return (rows, headers)"""
        logger = logging.getLogger(__name__)

        try:
            with open(file_path, 'r', newline='', encoding=encoding) as file:
                dict_reader = csv.DictReader(file, delimiter=delimiter)
                headers = [h.strip() for h in (dict_reader.fieldnames or [])]
                data = [
                    {(k or '').strip(): (v or '') for k, v in row.items()}
                    for row in dict_reader
                ]

            logger.info(f"CSV Headers: {headers}")
            logger.info(f"Successfully read {len(data)} records from {file_path}")
            return data, headers

        except FileNotFoundError:
            logger.error(f"Input file {file_path} not found")
            raise
        except Exception as e:
            logger.error(f"Error reading CSV: {e}")
            raise

    @staticmethod
    def read_excel(file_path: str, sheet_name: Optional[str] = None) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read an Excel sheet as strings and return (rows, headers)"""
        logger = logging.getLogger(__name__)

        try:
            frame = pd.read_excel(file_path, sheet_name=sheet_name or 0, dtype=str)
        except Exception as e:
            logger.error(f"Error reading Excel file {file_path}: {e}")
            raise

        frame.columns = frame.columns.astype(str).str.strip()
        frame = frame.dropna(how='all').fillna('')

        headers = list(frame.columns)
        data = frame.to_dict(orient='records')
        logger.info(f"Successfully read {len(data)} records from {file_path}")
        return data, headers

    @staticmethod
    def read_table(file_path: str, encoding: str = 'utf-8-sig',
                   delimiter: str = ',') -> Tuple[List[Dict[str, Any]], List[str]]:
        """Dispatch to the Excel or CSV reader based on file extension"""
        if Path(file_path).suffix.lower() in EXCEL_SUFFIXES:
            return CSVHandler.read_excel(file_path)
        return CSVHandler.read_csv(file_path, encoding=encoding, delimiter=delimiter)

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file"""
        logger = logging.getLogger(__name__)

        if not data:
            logger.warning("No data to write")
            return

        if fieldnames is None:
            fieldnames = list(data[0].keys())

        try:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(data)

            logger.info(f"Successfully wrote {len(data)} records to {output_path}")

        except Exception as e:
            logger.error(f"Error writing CSV: {e}")
            raise


def _require_columns(headers: List[str], required: List[str], file_path: str) -> None:
    missing = [column for column in required if column not in headers]
    if missing:
        raise ValueError(f"{file_path} is missing required columns: {missing}")


def load_person_records(file_path: str, encoding: str = 'utf-8-sig',
                        delimiter: str = ',') -> List[PersonRecord]:
    """Read the people input into PersonRecords, in file order"""
    rows, headers = CSVHandler.read_table(file_path, encoding=encoding, delimiter=delimiter)
    _require_columns(headers, PERSON_COLUMNS, file_path)

    return [
        PersonRecord(
            first_name=str(row.get('FirstName') or ''),
            last_name=str(row.get('LastName') or ''),
            department_id=str(row.get('DepartmentID') or ''),
        )
        for row in rows
    ]


def load_department_map(file_path: str, encoding: str = 'utf-8-sig',
                        delimiter: str = ',') -> Dict[str, str]:
    """Read DepartmentID -> OU pairs. The first occurrence of a DepartmentID wins."""
    logger = logging.getLogger(__name__)

    rows, headers = CSVHandler.read_table(file_path, encoding=encoding, delimiter=delimiter)
    _require_columns(headers, DEPARTMENT_COLUMNS, file_path)

    department_map = {}
    for row in rows:
        department_id = str(row.get('DepartmentID') or '').strip()
        ou_path = str(row.get('OU') or '').strip()
        if not department_id:
            continue
        if department_id in department_map:
            logger.warning(f"Duplicate DepartmentID {department_id} in {file_path}, keeping first")
            continue
        department_map[department_id] = ou_path

    logger.info(f"Loaded {len(department_map)} department mappings")
    return department_map
