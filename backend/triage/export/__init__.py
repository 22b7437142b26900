from triage.export.csv_export import CSV_FILENAME, render_actions_csv
from triage.export.pdf_export import pdf_filename, plan_page_slices, render_report_pdf
from triage.export.raster import render_report_image

__all__ = [
    "CSV_FILENAME",
    "pdf_filename",
    "plan_page_slices",
    "render_actions_csv",
    "render_report_image",
    "render_report_pdf",
]
