from typing import Dict, List

DEFAULT_KIND = "DEFAULT"
COMPLETED_STEP_LABEL = "Completed"

# 変換種別ごとの処理ステップ (表示用)
CONVERSION_STEPS: Dict[str, List[str]] = {
    "PDF_TO_WORD": [
        "Uploading file",
        "Analyzing PDF structure",
        "Extracting text content",
        "Converting images",
        "Formatting document",
        "Generating Word file",
        "Finalizing conversion",
    ],
    "PDF_TO_EXCEL": [
        "Uploading file",
        "Analyzing PDF structure",
        "Detecting tables",
        "Extracting table data",
        "Formatting cells",
        "Generating Excel file",
        "Finalizing conversion",
    ],
    "PDF_TO_POWERPOINT": [
        "Uploading file",
        "Analyzing PDF structure",
        "Extracting slides",
        "Converting graphics",
        "Formatting slides",
        "Generating PowerPoint file",
        "Finalizing conversion",
    ],
    "PDF_TO_IMAGE": [
        "Uploading file",
        "Analyzing PDF pages",
        "Rendering pages",
        "Optimizing images",
        "Generating output",
        "Finalizing conversion",
    ],
    "WORD_TO_PDF": [
        "Uploading file",
        "Parsing document",
        "Converting styles",
        "Rendering pages",
        "Generating PDF",
        "Finalizing conversion",
    ],
    "EXCEL_TO_PDF": [
        "Uploading file",
        "Parsing spreadsheet",
        "Formatting tables",
        "Rendering pages",
        "Generating PDF",
        "Finalizing conversion",
    ],
    "IMAGE_TO_PDF": [
        "Uploading file",
        "Processing images",
        "Optimizing quality",
        "Creating PDF pages",
        "Generating PDF",
        "Finalizing conversion",
    ],
    "MERGE_PDF": [
        "Uploading files",
        "Analyzing PDFs",
        "Merging pages",
        "Optimizing output",
        "Generating merged PDF",
        "Finalizing conversion",
    ],
    "SPLIT_PDF": [
        "Uploading file",
        "Analyzing PDF",
        "Splitting pages",
        "Creating output files",
        "Generating split PDFs",
        "Finalizing conversion",
    ],
    "COMPRESS_PDF": [
        "Uploading file",
        "Analyzing content",
        "Compressing images",
        "Optimizing fonts",
        "Reducing file size",
        "Generating compressed PDF",
        "Finalizing conversion",
    ],
    "OCR_PDF": [
        "Uploading file",
        "Analyzing pages",
        "Detecting text regions",
        "Running OCR engine",
        "Embedding text layer",
        "Generating searchable PDF",
        "Finalizing conversion",
    ],
    DEFAULT_KIND: [
        "Uploading file",
        "Processing",
        "Converting",
        "Generating output",
        "Finalizing conversion",
    ],
}


def get_steps(kind: str) -> List[str]:
    """Return the step names for a conversion kind, falling back to the default catalog."""
    return list(CONVERSION_STEPS.get(kind) or CONVERSION_STEPS[DEFAULT_KIND])
