"""Sequence export to and from JSON files."""

from pathlib import Path
from typing import Optional, Union

from ..core import SequenceFormatError
from ..sequencer import SequenceExport


class SequenceExporter:
    """Save and load recorded sequences as JSON."""

    def __init__(self, indent: Optional[int] = 2):
        """
        Initialize SequenceExporter.

        Args:
            indent: JSON indentation (None for compact output)
        """
        self.indent = indent

    def export(self, sequence: SequenceExport, output_path: Union[str, Path]) -> Path:
        """
        Write a sequence export to a JSON file.

        Args:
            sequence: Exported sequence
            output_path: Path to output JSON file

        Returns:
            Path that was written
        """
        output_path = Path(output_path)
        # Ensure output directory exists
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(sequence.to_json(indent=self.indent))
        return output_path

    def load(self, path: Union[str, Path]) -> SequenceExport:
        """
        Read a sequence export written by :meth:`export`.

        Raises:
            FileNotFoundError: If the file doesn't exist
            SequenceFormatError: If the file is not a valid sequence export
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Sequence file not found: {path}")
        try:
            text = path.read_text()
        except UnicodeDecodeError as e:
            raise SequenceFormatError(f"Sequence file is not text: {path}") from e
        return SequenceExport.from_json(text)
