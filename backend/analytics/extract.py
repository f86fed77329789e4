import hashlib
import logging
from abc import ABC, abstractmethod

import pandas as pd

from .errors import SourceReadError, UnsupportedFormatError
from .schema import ExtractionPayload, RAW_COLUMNS


class BaseParser(ABC):
    @abstractmethod
    def parse(self, file_path: str) -> ExtractionPayload:
        pass

    def get_file_hash(self, file_path: str) -> str:
        sha256_hash = hashlib.sha256()
        with open(file_path, "rb") as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                sha256_hash.update(byte_block)
        return sha256_hash.hexdigest()


class CSVParser(BaseParser):
    """
    Header-mapped CSV loader. Every cell stays raw text; coercion is the
    normalizer's job, so pandas type inference and NA detection are disabled.
    """

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def parse(self, file_path: str) -> ExtractionPayload:
        logging.info(f"Extracting CSV: {file_path}")
        try:
            df = pd.read_csv(
                file_path,
                sep=self.delimiter,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
            file_hash = self.get_file_hash(file_path)
        except FileNotFoundError as e:
            raise SourceReadError(f"Source file not found: {file_path}") from e
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise SourceReadError(f"Could not read {file_path}: {e}") from e

        df.columns = [str(c).strip() for c in df.columns]
        if df.empty:
            raise SourceReadError(f"No data rows found in {file_path}")

        missing = [c for c in RAW_COLUMNS if c not in df.columns]
        if missing:
            # Absent columns degrade to per-field defaults downstream
            logging.warning(f"[Extract] {file_path} is missing columns: {', '.join(missing)}")

        rows = df.to_dict(orient="records")
        logging.info(f"Extracted {len(rows)} rows from {file_path}")

        return {
            "document_hash": file_hash,
            "rows": rows,
            "source_file": file_path,
        }


class ParserFactory:
    @staticmethod
    def get_parser(file_type: str) -> BaseParser:
        ft = file_type.lower().lstrip('.')
        if ft in ('csv', 'txt'):
            return CSVParser()
        elif ft == 'tsv':
            return CSVParser(delimiter='\t')
        else:
            raise UnsupportedFormatError(f"Unsupported file type: {file_type}")
