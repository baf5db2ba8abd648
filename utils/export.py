"""
utils/export.py — Calendar Excel export (openpyxl) and activities CSV export.

Calendar workbook: one sheet, one row per event in grid order.
Columns: Date, Kind, Title, Window end, Details.
Activities CSV: the raw activity columns, one row per activity.
"""

import csv
from io import BytesIO, StringIO
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from calendar_grid import build_grid, period_label
from models import KIND_HARVEST, KIND_PLANTING, KIND_ACTIVITY, HarvestAttributes, PlantingAttributes, ActivityAttributes


# Kind colors for the Kind column
KIND_FILLS = {
    KIND_HARVEST: PatternFill(start_color='FFB300', end_color='FFB300', fill_type='solid'),
    KIND_PLANTING: PatternFill(start_color='4CAF50', end_color='4CAF50', fill_type='solid'),
    KIND_ACTIVITY: PatternFill(start_color='1565C0', end_color='1565C0', fill_type='solid'),
}

HEADER_FONT = Font(name='Calibri', bold=True, color='FFFFFF', size=11)
HEADER_FILL = PatternFill(start_color='1565C0', end_color='1565C0', fill_type='solid')
HEADER_ALIGNMENT = Alignment(horizontal='center', vertical='center', wrap_text=True)
HEADER_BORDER = Border(
    bottom=Side(style='thin', color='0D47A1'),
    right=Side(style='thin', color='E2E8F0'),
)
CELL_BORDER = Border(
    bottom=Side(style='thin', color='E2E8F0'),
    right=Side(style='thin', color='E2E8F0'),
)

CALENDAR_COLUMNS = ['Date', 'Kind', 'Title', 'Window end', 'Details']

ACTIVITY_CSV_COLUMNS = [
    'id', 'activity_type', 'started_at', 'ended_at', 'duration_minutes', 'labor_hours',
    'location_id', 'crop', 'asset_id', 'asset_name', 'quantity', 'unit', 'cost', 'notes',
]


def event_details(event):
    """Short free-text summary of an event's attributes."""
    attrs = event.attributes
    parts = []
    if isinstance(attrs, HarvestAttributes):
        parts.append(f"from {attrs.base_event} on {attrs.base_date}")
        if attrs.bed_label:
            parts.append(attrs.bed_label)
    elif isinstance(attrs, PlantingAttributes):
        if attrs.qty is not None:
            parts.append(f"qty {attrs.qty}")
        if attrs.weight_grams is not None:
            parts.append(f"{attrs.weight_grams} g")
        if attrs.bed_label:
            parts.append(attrs.bed_label)
    elif isinstance(attrs, ActivityAttributes):
        for am in attrs.amendments:
            amount = f" {am.quantity:g} {am.unit or ''}".rstrip() if am.quantity is not None else ''
            parts.append(f"{am.name}{amount}")
        if attrs.notes:
            parts.append(attrs.notes)
    return '; '.join(parts)


def _build_sheet(ws, cells):
    """Populate a worksheet with one row per event, grid order."""
    for col_idx, col_name in enumerate(CALENDAR_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = HEADER_BORDER

    row_idx = 2
    for grid_cell in cells:
        for event in grid_cell.events:
            ws.cell(row=row_idx, column=1, value=grid_cell.date).border = CELL_BORDER

            kind_cell = ws.cell(row=row_idx, column=2, value=event.kind)
            kind_cell.border = CELL_BORDER
            if event.kind in KIND_FILLS:
                kind_cell.fill = KIND_FILLS[event.kind]
                kind_cell.font = Font(color='FFFFFF', bold=True)

            ws.cell(row=row_idx, column=3, value=event.title).border = CELL_BORDER
            ws.cell(row=row_idx, column=4, value=event.end or '').border = CELL_BORDER
            ws.cell(row=row_idx, column=5, value=event_details(event)).border = CELL_BORDER
            row_idx += 1

    ws.column_dimensions['A'].width = 12
    ws.column_dimensions['B'].width = 12
    ws.column_dimensions['C'].width = 40
    ws.column_dimensions['D'].width = 12
    ws.column_dimensions['E'].width = 40

    # Freeze header row
    ws.freeze_panes = 'A2'
    return row_idx - 2


def generate_calendar_excel(view_mode, anchor, events, today):
    """Generate an Excel workbook of the events visible in a calendar view.

    Returns:
        (BytesIO buffer, filename), or (None, None) when the view has no events.
    """
    import openpyxl

    cells = build_grid(view_mode, anchor, events, today)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = period_label(view_mode, anchor)[:31]

    if _build_sheet(ws, cells) == 0:
        return None, None

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    filename = f"calendar_{view_mode}_{anchor}.xlsx"
    return buffer, filename


def generate_activities_csv(activities):
    """Render activity rows as CSV text with a header line."""
    output = StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(ACTIVITY_CSV_COLUMNS)
    for activity in activities:
        writer.writerow([
            '' if activity.get(col) is None else activity.get(col)
            for col in ACTIVITY_CSV_COLUMNS
        ])
    return output.getvalue()
