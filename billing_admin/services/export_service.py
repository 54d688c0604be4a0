"""Report exports: Excel (openpyxl), PDF (reportlab), Word (HTML .doc) and CSV."""
import csv
import io
import re
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

from flask import make_response, render_template, send_file
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import LongTable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from billing_admin.common.utils import now_str
from billing_admin.common.validators import ValidationError

FORMATS = {
    'excel': ('xlsx', 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'),
    'pdf': ('pdf', 'application/pdf'),
    'word': ('doc', 'application/msword'),
    'csv': ('csv', 'text/csv; charset=utf-8'),
}


def _summary_pairs(summary: Optional[Dict]) -> List[tuple[str, object]]:
    if not summary:
        return []
    return [(key.replace('_', ' ').title(), value) for key, value in summary.items()]


def to_excel(title: str, headers: Sequence[str], rows: Sequence[Sequence], summary: Optional[Dict] = None) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    # Sheet names: max 31 chars, no []:*?/\
    worksheet.title = re.sub(r'[\[\]:*?/\\]', '-', title)[:31]

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    center_alignment = Alignment(horizontal="center")

    for col_num, header in enumerate(headers, 1):
        cell = worksheet.cell(row=1, column=col_num)
        cell.value = header
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = center_alignment

    for row_num, row in enumerate(rows, 2):
        for col_num, value in enumerate(row, 1):
            worksheet.cell(row=row_num, column=col_num, value=value)

    if summary:
        start = len(rows) + 3
        worksheet.cell(row=start, column=1, value='Summary').font = Font(bold=True)
        for offset, (label, value) in enumerate(_summary_pairs(summary), 1):
            worksheet.cell(row=start + offset, column=1, value=label)
            worksheet.cell(row=start + offset, column=2, value=value)

    for col_num, header in enumerate(headers, 1):
        widest = max([len(str(header))] + [len(str(r[col_num - 1])) for r in rows if len(r) >= col_num])
        worksheet.column_dimensions[get_column_letter(col_num)].width = min(max(widest + 2, 10), 50)

    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()


def to_pdf(title: str, headers: Sequence[str], rows: Sequence[Sequence], summary: Optional[Dict] = None) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), leftMargin=24, rightMargin=24, topMargin=24, bottomMargin=24)
    styles = getSampleStyleSheet()
    cell_style = styles['BodyText']
    cell_style.fontSize = 7
    cell_style.leading = 9

    elements = [
        Paragraph(escape(title), styles['Title']),
        Paragraph(f"Generated {now_str()}", styles['Normal']),
        Spacer(1, 12),
    ]

    data = [list(headers)]
    for row in rows:
        data.append([Paragraph(escape(str(value)), cell_style) for value in row])
    table = LongTable(data, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.darkblue),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 8),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 6),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
    ]))
    elements.append(table)

    pairs = _summary_pairs(summary)
    if pairs:
        elements.append(Spacer(1, 12))
        elements.append(Paragraph('Summary', styles['Heading2']))
        stable = Table([[label, str(value)] for label, value in pairs], colWidths=[180, 140])
        stable.setStyle(TableStyle([
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ]))
        elements.append(stable)

    doc.build(elements)
    return buf.getvalue()


def to_word(title: str, headers: Sequence[str], rows: Sequence[Sequence], summary: Optional[Dict] = None) -> bytes:
    """Word opens an HTML table served as application/msword."""
    html = render_template(
        'reports/export_word.html',
        title=title,
        headers=headers,
        rows=rows,
        summary=_summary_pairs(summary),
        generated_at=now_str(),
    )
    return html.encode('utf-8')


def to_csv(headers: Sequence[str], rows: Sequence[Sequence]) -> bytes:
    output = io.StringIO()
    # BOM so Excel detects UTF-8 (peso sign)
    output.write('\ufeff')
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return output.getvalue().encode('utf-8')


def build_export_response(fmt: str, filename_stem: str, title: str, headers: Sequence[str],
                          rows: Sequence[Sequence], summary: Optional[Dict] = None):
    fmt = (fmt or 'excel').lower()
    if fmt not in FORMATS:
        raise ValidationError({'format': f"Unsupported export format: {fmt}"})
    extension, mimetype = FORMATS[fmt]
    filename = f"{filename_stem}.{extension}"

    if fmt == 'excel':
        payload = to_excel(title, headers, rows, summary)
    elif fmt == 'pdf':
        payload = to_pdf(title, headers, rows, summary)
    elif fmt == 'word':
        payload = to_word(title, headers, rows, summary)
    else:
        response = make_response(to_csv(headers, rows))
        response.headers['Content-Type'] = mimetype
        response.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

    return send_file(io.BytesIO(payload), mimetype=mimetype, as_attachment=True, download_name=filename)
